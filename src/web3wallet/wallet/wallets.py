"""
Wallets - In-memory HD and imported wallets.

- HDWallet: mnemonic-backed, derives any number of addresses (BIP-44)
- PrivateKeyWallet: a single imported key, no further derivation

Both hold their secret in a SecretBuffer and wipe it on lock(), on
leaving a `with` block, or (best effort) on garbage collection.
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..errors import DerivationUnsupported, InvalidPrivateKeyFormat, MalformedDocument
from ..models.keystore import (
    WALLET_TYPE_HD,
    WALLET_TYPE_IMPORTED,
    KeystoreDocument,
    KeystoreMetadata,
    metadata_bytes,
    serialize,
)
from ..networks import DEFAULT_NETWORK, get_network_by_name
from . import mnemonic as bip39
from .crypto import KdfSpec, decrypt_secret, encrypt_secret
from .hd import (
    DEFAULT_BASE_PATH,
    DerivationPath,
    KeyPair,
    derive_key,
    derive_range,
)
from .secure import SecretBuffer

logger = logging.getLogger(__name__)

_PRIVATE_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


# ============================================
# Data Classes
# ============================================

@dataclass
class WalletAddress:
    """A derived address from the HD wallet."""
    index: int      # Address index (last path segment)
    path: str       # BIP-44 path (e.g., "m/44'/60'/0'/0/0")
    address: str    # 0x... address
    label: str = "" # User-friendly name

    def to_dict(self) -> dict:
        return asdict(self)


# ============================================
# HD Wallet
# ============================================

class HDWallet:
    """
    Ethereum HD wallet backed by a BIP-39 mnemonic.

    Usage:
        with HDWallet.create(word_count=12) as wallet:
            phrase = wallet.mnemonic     # show once, store offline
            address = wallet.primary_address
            doc = wallet.to_keystore("main", "S3cure!pass")
    """

    wallet_type = WALLET_TYPE_HD

    def __init__(self, mnemonic: SecretBuffer, network: str = DEFAULT_NETWORK,
                 passphrase: Optional[str] = None, base_path: str = DEFAULT_BASE_PATH):
        """Take ownership of a mnemonic buffer (validated here)."""
        try:
            get_network_by_name(network)
            bip39.validate(mnemonic)
            self.base_path = DerivationPath.parse(base_path)
        except BaseException:
            mnemonic.wipe()
            raise
        self._mnemonic = mnemonic
        self._seed = bip39.to_seed(mnemonic, passphrase)
        self.network = network
        self._addresses: list[WalletAddress] = []

        if not self.base_path.is_ethereum_bip44():
            logger.warning("Non-standard derivation path %s; addresses will not match MetaMask",
                           self.base_path)

    @classmethod
    def create(cls, word_count: int = bip39.DEFAULT_WORD_COUNT, network: str = DEFAULT_NETWORK,
               passphrase: Optional[str] = None) -> "HDWallet":
        """
        Create a new wallet with a fresh mnemonic.

        Args:
            word_count: 12 (128-bit) or 24 (256-bit) word mnemonic
            network: network name recorded in the keystore
            passphrase: optional BIP-39 passphrase ("25th word")
        """
        wallet = cls(bip39.generate(word_count), network, passphrase)
        wallet.derive_address(0, "Primary")
        return wallet

    @classmethod
    def restore(cls, phrase: str | SecretBuffer, network: str = DEFAULT_NETWORK,
                passphrase: Optional[str] = None,
                base_path: str = DEFAULT_BASE_PATH) -> "HDWallet":
        """Restore a wallet from an existing mnemonic."""
        wallet = cls(bip39.normalize(phrase), network, passphrase, base_path)
        wallet.derive_address(0, "Primary")
        return wallet

    @property
    def mnemonic(self) -> str:
        """The mnemonic (sensitive - only show during backup!)."""
        return self._mnemonic.to_text()

    @property
    def seed(self) -> SecretBuffer:
        return self._seed

    @property
    def is_locked(self) -> bool:
        return self._mnemonic is None or self._mnemonic.wiped

    def _path_for(self, index: int) -> DerivationPath:
        return self.base_path.child(index)

    def derive_address(self, index: int, label: str = "") -> WalletAddress:
        """
        Derive the address at the given index.

        Args:
            index: Address index (0, 1, 2, ...)
            label: User-friendly label
        """
        path = self._path_for(index)
        with derive_key(self._seed, path) as keypair:
            addr = WalletAddress(
                index=index,
                path=str(path),
                address=keypair.address,
                label=label or f"Address {index}",
            )

        if not any(a.path == addr.path for a in self._addresses):
            self._addresses.append(addr)
        return addr

    def derive_addresses(self, start_index: int, count: int) -> list[WalletAddress]:
        """Derive `count` consecutive addresses; private keys are wiped immediately."""
        results = []
        for derived in derive_range(self._seed, self.base_path, start_index, count):
            with derived.keypair:
                results.append(WalletAddress(
                    index=derived.index,
                    path=str(self._path_for(derived.index)),
                    address=derived.address,
                    label=f"Address {derived.index}",
                ))
        return results

    def get_address(self, index: int) -> str:
        """Get the address at the given index (derives if needed)."""
        path = str(self._path_for(index))
        for addr in self._addresses:
            if addr.path == path:
                return addr.address
        return self.derive_address(index).address

    def get_keypair(self, index: int) -> KeyPair:
        """
        Key pair for an address index.

        WARNING: the caller owns the private key; use it in a `with` block.
        """
        return derive_key(self._seed, self._path_for(index))

    def get_account(self, index: int) -> LocalAccount:
        """
        eth_account LocalAccount for offline signing.

        The account keeps its own copy of the private key, which cannot be
        wiped; drop the reference as soon as signing is done.
        """
        with self.get_keypair(index) as keypair:
            return Account.from_key(keypair.private_key.to_bytes())

    @property
    def addresses(self) -> list[WalletAddress]:
        """All derived addresses."""
        return self._addresses.copy()

    @property
    def primary_address(self) -> str:
        """The first (primary) address."""
        return self.get_address(0)

    def secret(self) -> SecretBuffer:
        """Plaintext persisted in the keystore (UTF-8 mnemonic)."""
        return self._mnemonic.copy()

    # ============================================
    # Keystore
    # ============================================

    def to_keystore(self, alias: str, password: str | SecretBuffer,
                    kdf_spec: Optional[KdfSpec] = None) -> KeystoreDocument:
        return _to_keystore(self, alias, password, kdf_spec)

    # ============================================
    # Security: Memory Cleanup
    # ============================================

    def lock(self) -> None:
        """
        Lock the wallet, clearing sensitive data from memory.

        After locking, the wallet cannot derive until reloaded.
        """
        if getattr(self, "_mnemonic", None) is not None:
            self._mnemonic.wipe()
        if getattr(self, "_seed", None) is not None:
            self._seed.wipe()

    def __enter__(self) -> "HDWallet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock()

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        self.lock()


# ============================================
# Private Key Wallet (Single Address)
# ============================================

class PrivateKeyWallet:
    """
    Simple wallet from a single private key.

    Unlike HD wallets, this can only have one address.
    """

    wallet_type = WALLET_TYPE_IMPORTED

    def __init__(self, keypair: KeyPair, network: str = DEFAULT_NETWORK):
        """Take ownership of a key pair."""
        try:
            get_network_by_name(network)
        except BaseException:
            keypair.wipe()
            raise
        self._keypair = keypair
        self.network = network

    @classmethod
    def from_private_key(cls, private_key: str | SecretBuffer,
                         network: str = DEFAULT_NETWORK) -> "PrivateKeyWallet":
        """
        Create a wallet from a hex private key.

        Args:
            private_key: 64 hex characters, with or without 0x prefix

        Raises:
            InvalidPrivateKeyFormat: not 64 hex characters or outside the curve order
        """
        text = private_key.to_text() if isinstance(private_key, SecretBuffer) else private_key
        if not isinstance(text, str):
            raise InvalidPrivateKeyFormat("Private key must be a hex string")
        pkey = text.strip()
        if pkey.startswith("0x") or pkey.startswith("0X"):
            pkey = pkey[2:]

        if not _PRIVATE_KEY_RE.match(pkey):
            raise InvalidPrivateKeyFormat(
                f"Expected 64 hex characters (with or without 0x prefix), got {len(pkey)} characters"
            )
        with SecretBuffer(bytes.fromhex(pkey)) as raw:
            keypair = KeyPair.from_private_key(raw)
        return cls(keypair, network)

    @property
    def address(self) -> str:
        """The wallet address."""
        return self._keypair.address

    @property
    def primary_address(self) -> str:
        return self.address

    @property
    def addresses(self) -> list[WalletAddress]:
        """List of addresses (only one for private key wallets)."""
        return [WalletAddress(index=0, path="imported", address=self.address, label="Imported")]

    @property
    def is_locked(self) -> bool:
        return self._keypair.private_key.wiped

    def get_address(self, index: int = 0) -> str:
        """Get address (only index 0 is valid)."""
        if index != 0:
            raise DerivationUnsupported("Private key wallets only have one address")
        return self.address

    def derive_address(self, index: int, label: str = "") -> WalletAddress:
        raise DerivationUnsupported("Imported private key wallets cannot derive addresses")

    def derive_addresses(self, start_index: int, count: int) -> list[WalletAddress]:
        raise DerivationUnsupported("Imported private key wallets cannot derive addresses")

    def private_key_hex(self) -> str:
        """0x-prefixed private key (sensitive!)."""
        return self._keypair.private_key_hex()

    def get_account(self, index: int = 0) -> LocalAccount:
        """eth_account LocalAccount for offline signing (only index 0 is valid)."""
        self.get_address(index)
        return Account.from_key(self._keypair.private_key.to_bytes())

    def secret(self) -> SecretBuffer:
        """Plaintext persisted in the keystore (hex private key, no prefix)."""
        return SecretBuffer.from_text(self._keypair.private_key.view().hex())

    def to_keystore(self, alias: str, password: str | SecretBuffer,
                    kdf_spec: Optional[KdfSpec] = None) -> KeystoreDocument:
        return _to_keystore(self, alias, password, kdf_spec)

    def lock(self) -> None:
        """Lock the wallet, clearing sensitive data from memory."""
        if getattr(self, "_keypair", None) is not None:
            self._keypair.wipe()

    def __enter__(self) -> "PrivateKeyWallet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock()

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        self.lock()


# ============================================
# Keystore Conversion
# ============================================

def _to_keystore(wallet: HDWallet | PrivateKeyWallet, alias: str,
                 password: str | SecretBuffer,
                 kdf_spec: Optional[KdfSpec]) -> KeystoreDocument:
    metadata = KeystoreMetadata(
        alias=alias,
        address=_recorded_address(wallet),
        network=wallet.network,
        wallet_type=wallet.wallet_type,
    )
    with wallet.secret() as plaintext:
        crypto = encrypt_secret(plaintext, password, kdf_spec, metadata_bytes(metadata))
    return serialize(metadata, crypto)


def wallet_from_keystore(document: KeystoreDocument, password: str | SecretBuffer,
                         passphrase: Optional[str] = None,
                         base_path: str = DEFAULT_BASE_PATH) -> HDWallet | PrivateKeyWallet:
    """
    Decrypt a keystore, auto-detecting the wallet type.

    Raises:
        CryptoFailure: wrong password or corrupted file
        MalformedDocument: decrypted secret does not match the metadata
    """
    metadata = document.metadata
    plaintext = decrypt_secret(document.crypto, password, document.metadata_bytes())

    if metadata.wallet_type == WALLET_TYPE_IMPORTED:
        with plaintext:
            wallet = PrivateKeyWallet.from_private_key(plaintext, metadata.network)
    else:
        # HDWallet takes ownership of the buffer
        wallet = HDWallet(plaintext, metadata.network, passphrase, base_path)

    if _recorded_address(wallet).lower() != metadata.address.lower():
        wallet.lock()
        raise MalformedDocument(
            "Decrypted wallet does not match the keystore address (wrong BIP-39 passphrase?)"
        )
    return wallet


def _recorded_address(wallet: HDWallet | PrivateKeyWallet) -> str:
    """Address stored in keystore metadata: index 0 of the default base path."""
    if isinstance(wallet, PrivateKeyWallet):
        return wallet.address
    with derive_key(wallet.seed, DerivationPath.parse(DEFAULT_BASE_PATH).child(0)) as keypair:
        return keypair.address
