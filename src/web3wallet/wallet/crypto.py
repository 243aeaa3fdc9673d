"""
Wallet Crypto - Password-based encryption of wallet secrets.

Industry-standard security:
- Argon2id key derivation (memory-hard), PBKDF2-HMAC-SHA256 for legacy files
- AES-256-GCM authenticated encryption, fresh 96-bit IV per encryption
- HMAC-SHA256 over ciphertext, IV and metadata, verified before decryption

Keys never exist unencrypted on disk. Derived keys live in SecretBuffers
and are wiped on every exit path.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from argon2.exceptions import HashingError
from argon2.low_level import hash_secret_raw, Type
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import (
    DecryptionFailed,
    EntropySourceError,
    InvalidKdfParameters,
    KdfError,
    MacVerificationFailed,
    MalformedDocument,
    UnsupportedKdf,
)
from ..models.keystore import (
    CIPHER_AES_256_GCM,
    KDF_ARGON2ID,
    KDF_PBKDF2,
    CryptoBlock,
    KdfParams,
)
from .secure import SecretBuffer

logger = logging.getLogger(__name__)


# ============================================
# Security Constants
# ============================================

# Argon2id parameters (OWASP minimum: 46 MiB, 1 pass, 1 lane)
ARGON2_MEMORY_COST = 47_104  # KiB
ARGON2_TIME_COST = 1
ARGON2_PARALLELISM = 1

# Low-memory profile (OWASP alternative: 19 MiB, 2 passes, 1 lane)
ARGON2_LOW_MEMORY_COST = 19_456  # KiB
ARGON2_LOW_MEMORY_TIME_COST = 2

# Upper bounds for parameters read from files, so a crafted keystore
# cannot make us allocate gigabytes or spin forever
ARGON2_MAX_MEMORY_COST = 4 * 1024 * 1024  # 4 GiB
ARGON2_MAX_TIME_COST = 64
ARGON2_MAX_PARALLELISM = 64

# PBKDF2-HMAC-SHA256 (OWASP 2023)
PBKDF2_ITERATIONS = 600_000
PBKDF2_MAX_ITERATIONS = 10_000_000

KEY_SIZE = 32       # AES-256
SALT_SIZE = 16
MIN_SALT_SIZE = 8
AES_IV_SIZE = 12    # 96 bits (recommended for GCM)
MAC_SIZE = 32

_MAC_KEY_INFO = b"web3wallet keystore mac"


def _random_bytes(size: int) -> bytes:
    try:
        return secrets.token_bytes(size)
    except (OSError, NotImplementedError) as e:
        raise EntropySourceError(f"Secure random source unavailable: {e}") from e


def _password_buffer(password: str | SecretBuffer) -> SecretBuffer:
    if isinstance(password, SecretBuffer):
        return password.copy()
    return SecretBuffer.from_text(password)


# ============================================
# Key Derivation
# ============================================

class KdfSpec:
    """A password KDF with its parameters (including salt)."""
    name = ""

    salt: bytes

    def validate(self) -> None:
        raise NotImplementedError

    def derive(self, password: str | SecretBuffer) -> SecretBuffer:
        """Derive a KEY_SIZE-byte key."""
        raise NotImplementedError

    def to_params(self) -> KdfParams:
        raise NotImplementedError

    @classmethod
    def from_params(cls, params: KdfParams) -> "KdfSpec":
        raise NotImplementedError

    @classmethod
    def fresh(cls, **kwargs) -> "KdfSpec":
        """New spec with a random salt."""
        return cls(salt=_random_bytes(SALT_SIZE), **kwargs)

    def _check_salt(self) -> None:
        if not isinstance(self.salt, (bytes, bytearray)) or len(self.salt) < MIN_SALT_SIZE:
            raise KdfError(f"Salt must be at least {MIN_SALT_SIZE} bytes")


@dataclass(frozen=True)
class Argon2idSpec(KdfSpec):
    """
    Argon2id key derivation.

    Argon2id is memory-hard, making brute-force attacks expensive.
    With the defaults each password guess needs ~46 MiB of RAM.
    """
    salt: bytes
    memory_kib: int = ARGON2_MEMORY_COST
    iterations: int = ARGON2_TIME_COST
    parallelism: int = ARGON2_PARALLELISM

    name = KDF_ARGON2ID

    def validate(self) -> None:
        self._check_salt()
        if not 1 <= self.parallelism <= ARGON2_MAX_PARALLELISM:
            raise KdfError(f"Argon2 parallelism out of range: {self.parallelism}")
        if not 1 <= self.iterations <= ARGON2_MAX_TIME_COST:
            raise KdfError(f"Argon2 iterations out of range: {self.iterations}")
        if not 8 * self.parallelism <= self.memory_kib <= ARGON2_MAX_MEMORY_COST:
            raise KdfError(f"Argon2 memory cost out of range: {self.memory_kib} KiB")

    def derive(self, password: str | SecretBuffer) -> SecretBuffer:
        self.validate()
        with _password_buffer(password) as pw:
            try:
                raw = hash_secret_raw(
                    secret=pw.to_bytes(),
                    salt=bytes(self.salt),
                    time_cost=self.iterations,
                    memory_cost=self.memory_kib,
                    parallelism=self.parallelism,
                    hash_len=KEY_SIZE,
                    type=Type.ID,
                )
            except HashingError as e:
                raise KdfError(f"Argon2 key derivation failed: {e}") from e
        return SecretBuffer(raw)

    def to_params(self) -> KdfParams:
        return KdfParams(
            type=self.name,
            salt=bytes(self.salt).hex(),
            iterations=self.iterations,
            memory_kib=self.memory_kib,
            parallelism=self.parallelism,
        )

    @classmethod
    def from_params(cls, params: KdfParams) -> "Argon2idSpec":
        return cls(
            salt=params.salt_bytes,
            memory_kib=params.memory_kib,
            iterations=params.iterations,
            parallelism=params.parallelism,
        )


@dataclass(frozen=True)
class Pbkdf2Spec(KdfSpec):
    """PBKDF2-HMAC-SHA256 key derivation (legacy / low-memory hosts)."""
    salt: bytes
    iterations: int = PBKDF2_ITERATIONS

    name = KDF_PBKDF2

    def validate(self) -> None:
        self._check_salt()
        if not 1 <= self.iterations <= PBKDF2_MAX_ITERATIONS:
            raise KdfError(f"PBKDF2 iterations out of range: {self.iterations}")

    def derive(self, password: str | SecretBuffer) -> SecretBuffer:
        self.validate()
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=bytes(self.salt),
            iterations=self.iterations,
        )
        with _password_buffer(password) as pw:
            return SecretBuffer(kdf.derive(pw.to_bytes()))

    def to_params(self) -> KdfParams:
        return KdfParams(type=self.name, salt=bytes(self.salt).hex(), iterations=self.iterations)

    @classmethod
    def from_params(cls, params: KdfParams) -> "Pbkdf2Spec":
        return cls(salt=params.salt_bytes, iterations=params.iterations)


KDF_REGISTRY: dict[str, type[KdfSpec]] = {
    KDF_ARGON2ID: Argon2idSpec,
    KDF_PBKDF2: Pbkdf2Spec,
}


def new_kdf_spec(kind: str = KDF_ARGON2ID, **params) -> KdfSpec:
    """
    Build a KDF spec with a fresh random salt.

    Args:
        kind: "argon2id" (default) or "pbkdf2"
        **params: parameter overrides (memory_kib, iterations, parallelism)
    """
    try:
        spec_cls = KDF_REGISTRY[kind]
    except KeyError:
        raise UnsupportedKdf(f"Unsupported KDF: {kind}")
    spec = spec_cls.fresh(**params)
    spec.validate()
    return spec


def kdf_spec_from_params(params: KdfParams) -> KdfSpec:
    """Rebuild the KDF spec recorded in a keystore."""
    try:
        spec_cls = KDF_REGISTRY[params.type]
    except KeyError:
        raise UnsupportedKdf(f"Unsupported KDF: {params.type}")
    return spec_cls.from_params(params)


def derive_encryption_key(password: str | SecretBuffer, kdf_spec: KdfSpec) -> SecretBuffer:
    """
    Stretch a password into a 32-byte encryption key.

    Raises:
        KdfError: invalid or out-of-range KDF parameters
    """
    return kdf_spec.derive(password)


# ============================================
# Encryption
# ============================================

def _mac_key(key: SecretBuffer) -> SecretBuffer:
    """MAC subkey, so HMAC and AES never share a raw key."""
    hkdf = HKDF(algorithm=hashes.SHA256(), length=KEY_SIZE, salt=None, info=_MAC_KEY_INFO)
    return SecretBuffer(hkdf.derive(key.to_bytes()))


def compute_mac(key: SecretBuffer, ciphertext: bytes, iv: bytes,
                associated_data: bytes = b"") -> bytes:
    """HMAC-SHA256 over len(ciphertext) || ciphertext || iv || associated_data."""
    with _mac_key(key) as mac_key:
        mac = hmac.new(mac_key.view(), digestmod=hashlib.sha256)
        mac.update(len(ciphertext).to_bytes(8, "big"))
        mac.update(ciphertext)
        mac.update(iv)
        mac.update(associated_data)
        return mac.digest()


def encrypt(plaintext: SecretBuffer | bytes, key: SecretBuffer,
            associated_data: bytes = b"") -> tuple[bytes, bytes]:
    """
    Encrypt with AES-256-GCM under a fresh random IV.

    Returns: (ciphertext_with_tag, iv)
    """
    if len(key) != KEY_SIZE:
        raise KdfError(f"Encryption key must be {KEY_SIZE} bytes")
    data = plaintext.view() if isinstance(plaintext, SecretBuffer) else plaintext
    iv = _random_bytes(AES_IV_SIZE)
    aesgcm = AESGCM(key.to_bytes())
    ciphertext = aesgcm.encrypt(iv, bytes(data), associated_data or None)
    return ciphertext, iv


def decrypt(ciphertext: bytes, iv: bytes, key: SecretBuffer, expected_mac: bytes,
            associated_data: bytes = b"") -> SecretBuffer:
    """
    Verify the MAC, then decrypt.

    Raises:
        MacVerificationFailed: MAC mismatch (decryption is not attempted)
        DecryptionFailed: GCM tag mismatch
    """
    actual_mac = compute_mac(key, ciphertext, iv, associated_data)
    if not hmac.compare_digest(actual_mac, expected_mac):
        logger.debug("Keystore MAC verification failed")
        raise MacVerificationFailed()

    aesgcm = AESGCM(key.to_bytes())
    try:
        plaintext = aesgcm.decrypt(iv, ciphertext, associated_data or None)
    except (InvalidTag, ValueError) as e:
        logger.debug("Keystore GCM authentication failed")
        raise DecryptionFailed() from e
    return SecretBuffer(plaintext)


# ============================================
# Keystore Payloads
# ============================================

def encrypt_secret(plaintext: SecretBuffer, password: str | SecretBuffer,
                   kdf_spec: Optional[KdfSpec] = None,
                   associated_data: bytes = b"") -> CryptoBlock:
    """
    Encrypt a wallet secret (mnemonic or private key) with a password.

    A fresh salt and IV are drawn for every call.
    """
    kdf_spec = kdf_spec or new_kdf_spec()
    with derive_encryption_key(password, kdf_spec) as key:
        ciphertext, iv = encrypt(plaintext, key, associated_data)
        mac = compute_mac(key, ciphertext, iv, associated_data)

    logger.debug("Encrypted secret with %s", kdf_spec.name)
    return CryptoBlock(
        ciphertext=ciphertext.hex(),
        iv=iv.hex(),
        kdf=kdf_spec.to_params(),
        mac=mac.hex(),
        cipher=CIPHER_AES_256_GCM,
    )


def decrypt_secret(crypto: CryptoBlock, password: str | SecretBuffer,
                   associated_data: bytes = b"") -> SecretBuffer:
    """
    Decrypt a keystore crypto block.

    Raises:
        CryptoFailure: wrong password or corrupted file (MAC or tag mismatch)
        InvalidKdfParameters: KDF parameters in the file are out of range
    """
    kdf_spec = kdf_spec_from_params(crypto.kdf)
    try:
        kdf_spec.validate()
    except KdfError as e:
        raise InvalidKdfParameters(str(e)) from e
    try:
        ciphertext = crypto.ciphertext_bytes
        iv = crypto.iv_bytes
        expected_mac = crypto.mac_bytes
    except ValueError as e:
        raise MalformedDocument(f"Invalid hex in crypto block: {e}") from e

    try:
        key = derive_encryption_key(password, kdf_spec)
    except KdfError as e:
        raise InvalidKdfParameters(str(e)) from e
    with key:
        return decrypt(ciphertext, iv, key, expected_mac, associated_data)
