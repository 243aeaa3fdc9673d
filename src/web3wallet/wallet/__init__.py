"""
Wallet package - Secure key management.

Contains:
- mnemonic: BIP-39 generation, validation and seeds
- hd: BIP-32/44 derivation and EIP-55 addresses
- crypto: Argon2id / PBKDF2 + AES-256-GCM + HMAC vault
- HDWallet, PrivateKeyWallet: in-memory wallets
- WalletManager: create / import / load / derive / list
"""

from .secure import SecretBuffer, wipe
from .hd import (
    DEFAULT_BASE_PATH,
    DerivationPath,
    DerivedKey,
    ExtendedKey,
    KeyPair,
    derive_address,
    derive_key,
    derive_range,
    master_key,
)
from .crypto import (
    Argon2idSpec,
    Pbkdf2Spec,
    KDF_REGISTRY,
    decrypt,
    decrypt_secret,
    derive_encryption_key,
    encrypt,
    encrypt_secret,
    new_kdf_spec,
)
from .password import validate_password
from .wallets import HDWallet, PrivateKeyWallet, WalletAddress, wallet_from_keystore
from .manager import (
    WalletManager,
    WalletInfo,
    CreateResult,
    ImportResult,
    LoadResult,
    DerivedAddress,
)

__all__ = [
    # Secrets
    "SecretBuffer",
    "wipe",
    # HD
    "DEFAULT_BASE_PATH",
    "DerivationPath",
    "DerivedKey",
    "ExtendedKey",
    "KeyPair",
    "derive_address",
    "derive_key",
    "derive_range",
    "master_key",
    # Vault
    "Argon2idSpec",
    "Pbkdf2Spec",
    "KDF_REGISTRY",
    "decrypt",
    "decrypt_secret",
    "derive_encryption_key",
    "encrypt",
    "encrypt_secret",
    "new_kdf_spec",
    # Wallets
    "validate_password",
    "HDWallet",
    "PrivateKeyWallet",
    "WalletAddress",
    "wallet_from_keystore",
    # Manager
    "WalletManager",
    "WalletInfo",
    "CreateResult",
    "ImportResult",
    "LoadResult",
    "DerivedAddress",
]
