"""
Keystore document - Versioned JSON format for encrypted wallets.

Layout (one document per <alias>.json):

    version     "1.0.0"
    metadata    alias, address, created_at, network, wallet_type (clear text)
    crypto      cipher, ciphertext, iv, kdf {type, params}, mac (hex)

Metadata stays unencrypted so wallets can be listed without a password.
It is bound to the ciphertext through the MAC and GCM associated data
(see metadata_bytes()).
"""

import json
import logging
import re
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..networks import NETWORK_NAMES
from ..errors import (
    FilesystemError,
    MalformedDocument,
    UnsupportedCipher,
    UnsupportedKdf,
    UnsupportedVersion,
    WalletNotFound,
    PermissionDenied,
)

logger = logging.getLogger(__name__)


KEYSTORE_VERSION = "1.0.0"
SUPPORTED_VERSIONS = (KEYSTORE_VERSION,)

CIPHER_AES_256_GCM = "aes-256-gcm"
SUPPORTED_CIPHERS = (CIPHER_AES_256_GCM,)

KDF_ARGON2ID = "argon2id"
KDF_PBKDF2 = "pbkdf2"
SUPPORTED_KDFS = (KDF_ARGON2ID, KDF_PBKDF2)

WALLET_TYPE_HD = "HDWallet"
WALLET_TYPE_IMPORTED = "Imported"
WALLET_TYPES = (WALLET_TYPE_HD, WALLET_TYPE_IMPORTED)

IV_SIZE = 12
MAC_SIZE = 32
GCM_TAG_SIZE = 16

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_address(address: str) -> bool:
    """Check 0x + 40 hex characters (case is not checked)."""
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================
# Data Classes
# ============================================

@dataclass
class KeystoreMetadata:
    """Clear-text wallet metadata."""
    alias: str
    address: str         # EIP-55, 0x-prefixed
    network: str         # mainnet, sepolia, goerli, holesky
    wallet_type: str     # HDWallet or Imported
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "alias": self.alias,
            "address": self.address,
            "created_at": self.created_at,
            "network": self.network,
            "wallet_type": self.wallet_type,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "KeystoreMetadata":
        _require_mapping(data, "metadata")
        return cls(
            alias=_require_str(data, "alias", "metadata"),
            address=_require_str(data, "address", "metadata"),
            network=_require_str(data, "network", "metadata"),
            wallet_type=_require_str(data, "wallet_type", "metadata"),
            created_at=_require_str(data, "created_at", "metadata"),
        )

    @property
    def is_hd(self) -> bool:
        return self.wallet_type == WALLET_TYPE_HD


@dataclass
class KdfParams:
    """KDF identifier and parameters as stored in the document."""
    type: str
    salt: str                          # hex
    iterations: int
    memory_kib: Optional[int] = None   # argon2id only
    parallelism: Optional[int] = None  # argon2id only

    def to_dict(self) -> dict:
        params = {k: v for k, v in asdict(self).items() if k != "type" and v is not None}
        return {"type": self.type, "params": params}

    @classmethod
    def from_dict(cls, data: Any) -> "KdfParams":
        _require_mapping(data, "crypto.kdf")
        kdf_type = _require_str(data, "type", "crypto.kdf")
        if kdf_type not in SUPPORTED_KDFS:
            raise UnsupportedKdf(f"Unsupported KDF: {kdf_type}")

        params = data.get("params")
        _require_mapping(params, "crypto.kdf.params")
        salt = _require_str(params, "salt", "crypto.kdf.params")
        _require_hex(salt, "crypto.kdf.params.salt")

        if kdf_type == KDF_ARGON2ID:
            return cls(
                type=kdf_type,
                salt=salt,
                iterations=_require_int(params, "iterations", "crypto.kdf.params"),
                memory_kib=_require_int(params, "memory_kib", "crypto.kdf.params"),
                parallelism=_require_int(params, "parallelism", "crypto.kdf.params"),
            )
        return cls(
            type=kdf_type,
            salt=salt,
            iterations=_require_int(params, "iterations", "crypto.kdf.params"),
        )

    @property
    def salt_bytes(self) -> bytes:
        return bytes.fromhex(self.salt)


@dataclass
class CryptoBlock:
    """Encrypted payload: AES-256-GCM ciphertext (tag appended), IV, KDF and MAC."""
    ciphertext: str      # hex
    iv: str              # hex, 12 bytes
    kdf: KdfParams
    mac: str             # hex, 32 bytes (HMAC-SHA256)
    cipher: str = CIPHER_AES_256_GCM

    def to_dict(self) -> dict:
        return {
            "cipher": self.cipher,
            "ciphertext": self.ciphertext,
            "iv": self.iv,
            "kdf": self.kdf.to_dict(),
            "mac": self.mac,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CryptoBlock":
        _require_mapping(data, "crypto")
        cipher = _require_str(data, "cipher", "crypto")
        if cipher not in SUPPORTED_CIPHERS:
            raise UnsupportedCipher(f"Unsupported cipher: {cipher}")

        ciphertext = _require_str(data, "ciphertext", "crypto")
        iv = _require_str(data, "iv", "crypto")
        mac = _require_str(data, "mac", "crypto")
        if len(_require_hex(ciphertext, "crypto.ciphertext")) < GCM_TAG_SIZE:
            raise MalformedDocument("crypto.ciphertext is shorter than the GCM tag")
        if len(_require_hex(iv, "crypto.iv")) != IV_SIZE:
            raise MalformedDocument(f"crypto.iv must be {IV_SIZE} bytes")
        if len(_require_hex(mac, "crypto.mac")) != MAC_SIZE:
            raise MalformedDocument(f"crypto.mac must be {MAC_SIZE} bytes")

        return cls(
            ciphertext=ciphertext,
            iv=iv,
            kdf=KdfParams.from_dict(data.get("kdf")),
            mac=mac,
            cipher=cipher,
        )

    @property
    def ciphertext_bytes(self) -> bytes:
        return bytes.fromhex(self.ciphertext)

    @property
    def iv_bytes(self) -> bytes:
        return bytes.fromhex(self.iv)

    @property
    def mac_bytes(self) -> bytes:
        return bytes.fromhex(self.mac)


@dataclass
class KeystoreDocument:
    """A complete keystore file."""
    metadata: KeystoreMetadata
    crypto: CryptoBlock
    version: str = KEYSTORE_VERSION

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "crypto": self.crypto.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Any) -> "KeystoreDocument":
        _require_mapping(data, "document")
        version = data.get("version")
        if not isinstance(version, str):
            raise MalformedDocument("Missing or invalid field: version")
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(f"Unsupported keystore version: {version}")

        metadata = KeystoreMetadata.from_dict(data.get("metadata"))
        _validate_metadata(metadata)
        return cls(
            metadata=metadata,
            crypto=CryptoBlock.from_dict(data.get("crypto")),
            version=version,
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> "KeystoreDocument":
        """Parse a document (alias of deserialize)."""
        return deserialize(raw)

    @classmethod
    def from_file(cls, path: Path) -> "KeystoreDocument":
        """
        Read and parse a keystore file.

        Raises:
            WalletNotFound: the file does not exist
            PermissionDenied: the file cannot be read
            FilesystemError: any other read failure (e.g. path is a directory)
            KeystoreFormatError: the content is not a valid document
        """
        try:
            raw = Path(path).read_bytes()
        except FileNotFoundError:
            raise WalletNotFound(f"Wallet file not found: {path}", path=str(path))
        except PermissionError:
            raise PermissionDenied(f"Permission denied reading {path}", path=str(path))
        except OSError as e:
            raise FilesystemError(f"Cannot read {path}: {e}", path=str(path)) from e
        return deserialize(raw)

    def metadata_bytes(self) -> bytes:
        """Canonical metadata encoding authenticated by the MAC and GCM tag."""
        return metadata_bytes(self.metadata)


def metadata_bytes(metadata: KeystoreMetadata) -> bytes:
    return json.dumps(metadata.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")


# ============================================
# Codec
# ============================================

def serialize(metadata: KeystoreMetadata, crypto: CryptoBlock) -> KeystoreDocument:
    """Bind metadata and an encrypted payload into a versioned document."""
    return KeystoreDocument(metadata=metadata, crypto=crypto, version=KEYSTORE_VERSION)


def deserialize(raw: bytes | str) -> KeystoreDocument:
    """
    Parse a keystore document.

    Raises:
        UnsupportedVersion: version is not 1.0.0
        MalformedDocument: bad JSON, missing or ill-typed fields
        UnsupportedCipher: cipher is not aes-256-gcm
        UnsupportedKdf: KDF is not argon2id or pbkdf2
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedDocument(f"Invalid JSON: {e}") from e
    return KeystoreDocument.from_dict(data)


# ============================================
# Field Validation
# ============================================

def _validate_metadata(metadata: KeystoreMetadata) -> None:
    if not validate_address(metadata.address):
        raise MalformedDocument(f"Invalid address format: {metadata.address}")
    if metadata.network not in NETWORK_NAMES:
        raise MalformedDocument(f"Unknown network: {metadata.network}")
    if metadata.wallet_type not in WALLET_TYPES:
        raise MalformedDocument(f"Unknown wallet_type: {metadata.wallet_type}")


def _require_mapping(value: Any, where: str) -> None:
    if not isinstance(value, dict):
        raise MalformedDocument(f"Missing or invalid section: {where}")


def _require_str(data: dict, key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedDocument(f"Missing or invalid field: {where}.{key}")
    return value


def _require_int(data: dict, key: str, where: str) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedDocument(f"Missing or invalid field: {where}.{key}")
    return value


def _require_hex(value: str, where: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise MalformedDocument(f"Invalid hex in {where}")
