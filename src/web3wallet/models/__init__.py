"""
Models package - Keystore document format.

Contains:
- KeystoreDocument: versioned JSON keystore (metadata + crypto block)
- serialize / deserialize: keystore codec
"""

from .keystore import (
    KEYSTORE_VERSION,
    KDF_ARGON2ID,
    KDF_PBKDF2,
    WALLET_TYPE_HD,
    WALLET_TYPE_IMPORTED,
    CryptoBlock,
    KdfParams,
    KeystoreDocument,
    KeystoreMetadata,
    deserialize,
    metadata_bytes,
    serialize,
    validate_address,
)

__all__ = [
    "KEYSTORE_VERSION",
    "KDF_ARGON2ID",
    "KDF_PBKDF2",
    "WALLET_TYPE_HD",
    "WALLET_TYPE_IMPORTED",
    "CryptoBlock",
    "KdfParams",
    "KeystoreDocument",
    "KeystoreMetadata",
    "deserialize",
    "metadata_bytes",
    "serialize",
    "validate_address",
]
