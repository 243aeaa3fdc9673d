"""
Errors - Closed exception taxonomy for wallet operations.

Every failure raised by the core is a WalletError subclass carrying a
`kind` tag (one of the ERROR_KINDS below) and a short stable `code`.
Callers branch on the kind; the CLI renders kind, code and message.
"""

from typing import Optional, Sequence


INPUT_VALIDATION = "InputValidation"
CRYPTO_FAILURE = "CryptoFailure"
KEYSTORE_FORMAT = "KeystoreFormat"
FILESYSTEM = "Filesystem"
DERIVATION_LIMIT = "DerivationLimit"
ENTROPY_SOURCE = "EntropySource"

ERROR_KINDS = (
    INPUT_VALIDATION,
    CRYPTO_FAILURE,
    KEYSTORE_FORMAT,
    FILESYSTEM,
    DERIVATION_LIMIT,
    ENTROPY_SOURCE,
)

# Single message for every cryptographic verification failure
CRYPTO_FAILURE_MESSAGE = "Invalid password or corrupted file"


class WalletError(Exception):
    """Base class for all wallet errors."""
    kind: str = ""
    code: str = "WALLET_000"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])

    def to_dict(self) -> dict:
        return {"kind": self.kind, "code": self.code, "message": self.message}


# ============================================
# Input Validation
# ============================================

class InputValidationError(WalletError, ValueError):
    """Invalid user input."""
    kind = INPUT_VALIDATION
    code = "INPUT_000"


class MnemonicError(InputValidationError):
    """Invalid BIP-39 mnemonic phrase."""
    code = "INPUT_010"


class InvalidWordCount(MnemonicError):
    """Mnemonic word count must be 12 or 24."""
    code = "INPUT_011"

    def __init__(self, count: int):
        super().__init__(f"Word count must be 12 or 24, got {count}")
        self.count = count


class UnknownWord(MnemonicError):
    """Mnemonic contains a word outside the BIP-39 wordlist."""
    code = "INPUT_012"

    def __init__(self, word: str, position: int):
        super().__init__(f"Unknown mnemonic word at position {position}: '{word}'")
        self.word = word
        self.position = position


class ChecksumMismatch(MnemonicError):
    """Mnemonic checksum does not match its entropy."""
    code = "INPUT_013"


class InvalidPrivateKeyFormat(InputValidationError):
    """Private key must be 32 bytes (64 hex characters)."""
    code = "INPUT_020"


class InvalidDerivationPath(InputValidationError):
    """Derivation path is not of the form m/<index>['] ..."""
    code = "INPUT_030"


class PasswordPolicyViolation(InputValidationError):
    """Password does not meet the password policy."""
    code = "INPUT_040"

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__("Password does not meet requirements: " + "; ".join(self.missing))


class InvalidAlias(InputValidationError):
    """Wallet alias is not a safe file name."""
    code = "INPUT_050"


class UnsupportedNetwork(InputValidationError):
    """Network is not one of the supported networks."""
    code = "INPUT_060"


class DerivationUnsupported(InputValidationError):
    """Imported (private key) wallets cannot derive further addresses."""
    code = "INPUT_070"


class InvalidArguments(InputValidationError):
    """Conflicting or missing operation arguments."""
    code = "INPUT_080"


class KdfError(InputValidationError):
    """Key derivation parameters are invalid."""
    code = "INPUT_090"


# ============================================
# Cryptographic Failures
# ============================================

class CryptoFailure(WalletError):
    """
    Decryption or verification failed.

    Subclasses exist for logging and tests only; the user-facing message
    is identical for all of them.
    """
    kind = CRYPTO_FAILURE
    code = "CRYPTO_001"

    def __init__(self, message: str = ""):
        super().__init__(CRYPTO_FAILURE_MESSAGE)


class MacVerificationFailed(CryptoFailure):
    """HMAC over the ciphertext did not verify."""


class DecryptionFailed(CryptoFailure):
    """AES-GCM authentication tag did not verify."""


# ============================================
# Keystore Format
# ============================================

class KeystoreFormatError(WalletError):
    """Keystore document is not usable."""
    kind = KEYSTORE_FORMAT
    code = "KEYSTORE_000"


class UnsupportedVersion(KeystoreFormatError):
    """Keystore version is not supported."""
    code = "KEYSTORE_001"


class MalformedDocument(KeystoreFormatError):
    """Keystore document is missing fields or has fields of the wrong shape."""
    code = "KEYSTORE_002"


class UnsupportedCipher(KeystoreFormatError):
    """Keystore cipher is not implemented."""
    code = "KEYSTORE_003"


class UnsupportedKdf(KeystoreFormatError):
    """Keystore KDF is not implemented."""
    code = "KEYSTORE_004"


class InvalidKdfParameters(KeystoreFormatError):
    """Keystore KDF parameters are out of range."""
    code = "KEYSTORE_005"


# ============================================
# Filesystem
# ============================================

class FilesystemError(WalletError):
    """Keystore file could not be read or written."""
    kind = FILESYSTEM
    code = "FS_000"

    def __init__(self, message: str = "", path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class AliasCollision(FilesystemError):
    """A wallet with this alias already exists."""
    code = "FS_001"


class WalletNotFound(FilesystemError):
    """Wallet file not found."""
    code = "FS_002"


class PermissionDenied(FilesystemError):
    """Permission denied for wallet file operation."""
    code = "FS_003"


# ============================================
# Derivation Limits
# ============================================

class DerivationLimitError(WalletError):
    """Derivation request is out of bounds."""
    kind = DERIVATION_LIMIT
    code = "DERIVE_000"


class InvalidPathSegment(DerivationLimitError):
    """Derivation path segment is out of range."""
    code = "DERIVE_001"


class DerivationCountExceeded(DerivationLimitError):
    """Too many addresses requested in one derivation."""
    code = "DERIVE_002"


class HardenedDerivationWithoutPrivateKey(DerivationLimitError):
    """Hardened child requested from a public-only key."""
    code = "DERIVE_003"


class InvalidChildKey(DerivationLimitError):
    """BIP-32 child key is invalid at this index (probability < 2^-127)."""
    code = "DERIVE_004"


# ============================================
# Entropy
# ============================================

class EntropySourceError(WalletError):
    """Secure random source unavailable."""
    kind = ENTROPY_SOURCE
    code = "ENTROPY_001"

