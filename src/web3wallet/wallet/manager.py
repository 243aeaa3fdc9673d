"""
Wallet Manager - Create, import, load and derive wallets.

Each operation validates its inputs (alias, collision, password policy,
derivation bounds) before any cryptographic work or file I/O, and
releases every secret it touched before returning.

Keystores live in the configured wallet directory as <alias>.json.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from ..config import WalletConfig
from ..errors import (
    AliasCollision,
    DerivationUnsupported,
    InvalidArguments,
    InvalidWordCount,
    PermissionDenied,
    FilesystemError,
    WalletError,
)
from ..models.keystore import KDF_ARGON2ID, KDF_PBKDF2, KeystoreDocument
from ..networks import get_network_by_name
from ..utils import (
    KEYSTORE_SUFFIX,
    SECURE_DIR_MODE,
    alias_from_name,
    set_secure_permissions,
    validate_alias,
)
from . import mnemonic as bip39
from .crypto import (
    ARGON2_LOW_MEMORY_COST,
    ARGON2_LOW_MEMORY_TIME_COST,
    KdfSpec,
    new_kdf_spec,
)
from .hd import DEFAULT_BASE_PATH, DerivationPath, check_range
from .password import validate_password
from .secure import SecretBuffer
from .wallets import HDWallet, PrivateKeyWallet, wallet_from_keystore

logger = logging.getLogger(__name__)


# ============================================
# Results
# ============================================

@dataclass
class DerivedAddress:
    """One derived address (no key material)."""
    index: int
    path: str
    address: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class WalletInfo:
    """Metadata about a saved wallet (read without a password)."""
    alias: str
    address: str
    network: str
    wallet_type: str
    created_at: str
    path: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CreateResult:
    address: str
    mnemonic: str        # shown once so the user can back it up
    network: str
    word_count: int
    alias: Optional[str] = None
    saved_path: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImportResult:
    address: str
    network: str
    wallet_type: str
    alias: Optional[str] = None
    saved_path: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LoadResult:
    alias: str
    address: str
    network: str
    wallet_type: str
    created_at: str
    derived: Optional[DerivedAddress] = None
    secret: Optional[str] = None   # only when explicitly requested

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.secret is None:
            data.pop("secret")
        return data


# ============================================
# Manager
# ============================================

class WalletManager:
    """
    Wallet operations against one wallet directory.

    Usage:
        manager = WalletManager(load_config())
        result = manager.create(save_alias="main", password="S3cure!pass")
        info = manager.load("main", address_only=True)
    """

    def __init__(self, config: Optional[WalletConfig] = None):
        """
        Initialize wallet manager.

        Args:
            config: settings (wallet_dir, default network, KDF choice)
        """
        self.config = config or WalletConfig()
        self.wallet_dir = Path(self.config.wallet_dir)

    def wallet_path(self, alias: str) -> Path:
        """Get the file path for a wallet by alias."""
        return self.wallet_dir / f"{alias}{KEYSTORE_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.wallet_path(alias_from_name(name)).exists()

    # ============================================
    # Create / Import
    # ============================================

    def create(self, word_count: int = bip39.DEFAULT_WORD_COUNT, network: Optional[str] = None,
               save_alias: Optional[str] = None, password: Optional[str | SecretBuffer] = None,
               force: bool = False, passphrase: Optional[str] = None,
               kdf: Optional[str] = None) -> CreateResult:
        """
        Create a new HD wallet, optionally saving it as <save_alias>.json.

        Raises:
            InvalidWordCount, UnsupportedNetwork, InvalidAlias,
            PasswordPolicyViolation, AliasCollision, FilesystemError
        """
        network = self._resolve_network(network)
        if word_count not in bip39.SUPPORTED_WORD_COUNTS:
            raise InvalidWordCount(word_count)
        path = self._check_save(save_alias, password, force)
        kdf_spec = self._kdf_spec(kdf) if path else None

        with HDWallet.create(word_count, network, passphrase) as wallet:
            address = wallet.primary_address
            if path:
                self._save(wallet, save_alias, password, path, force, kdf_spec)
            logger.info("Created HD wallet %s on %s", address, network)
            return CreateResult(
                address=address,
                mnemonic=wallet.mnemonic,
                network=network,
                word_count=word_count,
                alias=save_alias,
                saved_path=str(path) if path else None,
            )

    def import_wallet(self, mnemonic: Optional[str | SecretBuffer] = None,
                      private_key: Optional[str | SecretBuffer] = None,
                      network: Optional[str] = None, save_alias: Optional[str] = None,
                      password: Optional[str | SecretBuffer] = None, force: bool = False,
                      kdf: Optional[str] = None) -> ImportResult:
        """
        Import a wallet from a mnemonic or a private key (exactly one).

        Raises:
            InvalidArguments: both or neither of mnemonic / private_key
            MnemonicError, InvalidPrivateKeyFormat: bad secret
        """
        if (mnemonic is None) == (private_key is None):
            raise InvalidArguments("Provide exactly one of mnemonic or private key")
        network = self._resolve_network(network)
        if mnemonic is not None:
            bip39.validate(mnemonic)
        path = self._check_save(save_alias, password, force)
        kdf_spec = self._kdf_spec(kdf) if path else None

        if mnemonic is not None:
            wallet = HDWallet.restore(mnemonic, network)
        else:
            wallet = PrivateKeyWallet.from_private_key(private_key, network)

        with wallet:
            address = wallet.primary_address
            if path:
                self._save(wallet, save_alias, password, path, force, kdf_spec)
            logger.info("Imported %s wallet %s on %s", wallet.wallet_type, address, network)
            return ImportResult(
                address=address,
                network=network,
                wallet_type=wallet.wallet_type,
                alias=save_alias,
                saved_path=str(path) if path else None,
            )

    # ============================================
    # Load / Derive
    # ============================================

    def load(self, name: str, password: Optional[str | SecretBuffer] = None,
             address_only: bool = False, derive_index: Optional[int] = None,
             reveal_secret: bool = False, passphrase: Optional[str] = None) -> LoadResult:
        """
        Load a saved wallet.

        Args:
            name: alias or "<alias>.json"
            address_only: read metadata only (no password, no decryption)
            derive_index: also derive the address at this index (HD only)
            reveal_secret: include the decrypted mnemonic / private key
            passphrase: BIP-39 passphrase the wallet was created with, if any

        Raises:
            WalletNotFound, KeystoreFormatError, CryptoFailure,
            DerivationUnsupported
        """
        alias = alias_from_name(name)
        document = KeystoreDocument.from_file(self.wallet_path(alias))
        metadata = document.metadata
        result = LoadResult(
            alias=metadata.alias,
            address=metadata.address,
            network=metadata.network,
            wallet_type=metadata.wallet_type,
            created_at=metadata.created_at,
        )
        if address_only:
            return result

        if derive_index is not None:
            if not metadata.is_hd:
                raise DerivationUnsupported("Imported private key wallets cannot derive addresses")
            check_range(derive_index, 1)
        self._require_password(password)

        with wallet_from_keystore(document, password, passphrase) as wallet:
            if derive_index is not None:
                addr = wallet.derive_address(derive_index)
                result.derived = DerivedAddress(addr.index, addr.path, addr.address)
            if reveal_secret:
                result.secret = wallet.mnemonic if isinstance(wallet, HDWallet) \
                    else wallet.private_key_hex()
        logger.info("Loaded wallet '%s' (%s)", alias, metadata.address)
        return result

    def derive(self, mnemonic: Optional[str | SecretBuffer] = None, name: Optional[str] = None,
               password: Optional[str | SecretBuffer] = None, start_index: int = 0,
               count: int = 1, base_path: str = DEFAULT_BASE_PATH,
               passphrase: Optional[str] = None) -> list[DerivedAddress]:
        """
        Derive `count` addresses starting at `start_index` under `base_path`.

        The source is either a mnemonic or a saved HD wallet (by name).
        Nothing is written to disk.

        Raises:
            InvalidArguments: both or neither of mnemonic / name
            DerivationCountExceeded, InvalidPathSegment: bad range
            DerivationUnsupported: the saved wallet is an imported key
        """
        if (mnemonic is None) == (name is None):
            raise InvalidArguments("Provide exactly one of mnemonic or wallet name")
        base = DerivationPath.parse(base_path)
        check_range(start_index, count)

        if mnemonic is not None:
            wallet = HDWallet.restore(mnemonic, passphrase=passphrase, base_path=str(base))
        else:
            alias = alias_from_name(name)
            document = KeystoreDocument.from_file(self.wallet_path(alias))
            if not document.metadata.is_hd:
                raise DerivationUnsupported("Imported private key wallets cannot derive addresses")
            self._require_password(password)
            wallet = wallet_from_keystore(document, password, passphrase, str(base))

        with wallet:
            addresses = wallet.derive_addresses(start_index, count)
        logger.debug("Derived %d address(es) from index %d under %s", count, start_index, base)
        return [DerivedAddress(a.index, a.path, a.address) for a in addresses]

    # ============================================
    # Listing
    # ============================================

    def list_wallets(self) -> list[WalletInfo]:
        """List metadata of every keystore in the wallet directory, sorted by alias."""
        if not self.wallet_dir.is_dir():
            return []

        wallets = []
        for path in sorted(self.wallet_dir.glob(f"*{KEYSTORE_SUFFIX}")):
            try:
                metadata = KeystoreDocument.from_file(path).metadata
            except WalletError as e:
                logger.warning("Skipping unreadable keystore %s: %s", path.name, e.message)
                continue
            wallets.append(WalletInfo(
                alias=metadata.alias,
                address=metadata.address,
                network=metadata.network,
                wallet_type=metadata.wallet_type,
                created_at=metadata.created_at,
                path=str(path),
            ))
        return sorted(wallets, key=lambda w: w.alias)

    # ============================================
    # Helpers
    # ============================================

    def _resolve_network(self, network: Optional[str]) -> str:
        network = network or self.config.default_network
        get_network_by_name(network)
        return network

    def _kdf_spec(self, kdf: Optional[str]) -> KdfSpec:
        kind = kdf or self.config.kdf
        if kind == KDF_PBKDF2:
            return new_kdf_spec(kind, iterations=self.config.pbkdf2_iterations)
        if kind == KDF_ARGON2ID and self.config.low_memory:
            return new_kdf_spec(kind, memory_kib=ARGON2_LOW_MEMORY_COST,
                                iterations=ARGON2_LOW_MEMORY_TIME_COST)
        return new_kdf_spec(kind)

    @staticmethod
    def _require_password(password) -> None:
        if password is None:
            raise InvalidArguments("A password is required")

    def _check_save(self, alias: Optional[str], password, force: bool) -> Optional[Path]:
        """Validate a save request; returns the target path (None when not saving)."""
        if alias is None:
            return None
        validate_alias(alias)
        self._require_password(password)
        validate_password(password)
        path = self.wallet_path(alias)
        if path.exists() and not force:
            raise AliasCollision(f"Wallet '{alias}' already exists (use --force to overwrite)",
                                 path=str(path))
        return path

    def _save(self, wallet: HDWallet | PrivateKeyWallet, alias: str, password,
              path: Path, force: bool, kdf_spec: KdfSpec) -> None:
        document = wallet.to_keystore(alias, password, kdf_spec)
        self._write_keystore(document, path, force)
        logger.info("Saved wallet '%s' to %s (%s)", alias, path, kdf_spec.name)

    def _ensure_wallet_dir(self) -> None:
        if self.wallet_dir.is_dir():
            return
        try:
            self.wallet_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionDenied(f"Permission denied creating {self.wallet_dir}",
                                   path=str(self.wallet_dir)) from e
        except OSError as e:
            raise FilesystemError(f"Cannot create {self.wallet_dir}: {e}",
                                  path=str(self.wallet_dir)) from e
        set_secure_permissions(self.wallet_dir, SECURE_DIR_MODE)

    def _write_keystore(self, document: KeystoreDocument, path: Path, force: bool) -> None:
        """
        Write a keystore atomically.

        The document goes to a temp file in the same directory and is
        fsynced. Without force it is hard-linked to the target, which fails
        if the alias appeared in the meantime; with force it is renamed over
        the target. Readers never see a partial file.
        """
        self._ensure_wallet_dir()
        if path.exists() and not force:
            raise AliasCollision(f"Wallet '{path.stem}' already exists", path=str(path))

        try:
            fd, temp_name = tempfile.mkstemp(dir=self.wallet_dir, prefix=f".{path.stem}.",
                                             suffix=".tmp")
        except PermissionError as e:
            raise PermissionDenied(f"Permission denied writing to {self.wallet_dir}",
                                   path=str(path)) from e
        except OSError as e:
            raise FilesystemError(f"Failed to write {path}: {e}", path=str(path)) from e
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document.to_json())
                f.flush()
                os.fsync(f.fileno())
            set_secure_permissions(temp_path)
            if force:
                os.replace(temp_path, path)
            else:
                os.link(temp_path, path)
        except FileExistsError as e:
            raise AliasCollision(f"Wallet '{path.stem}' already exists", path=str(path)) from e
        except PermissionError as e:
            raise PermissionDenied(f"Permission denied writing {path}", path=str(path)) from e
        except OSError as e:
            raise FilesystemError(f"Failed to write {path}: {e}", path=str(path)) from e
        finally:
            temp_path.unlink(missing_ok=True)
        set_secure_permissions(path)
