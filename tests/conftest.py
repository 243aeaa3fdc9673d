"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from web3wallet.config import WalletConfig
from web3wallet.wallet.crypto import KdfSpec, new_kdf_spec
from web3wallet.wallet.manager import WalletManager

# BIP-39 test vector (all-zero entropy)
KNOWN_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
# MetaMask / ethers address at m/44'/60'/0'/0/0 for KNOWN_MNEMONIC
KNOWN_ADDRESS = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"

VALID_PASSWORD = "Corr3ct-Horse!"
FAST_PBKDF2_ITERATIONS = 1000


@pytest.fixture
def known_mnemonic() -> str:
    """Return the all-zero-entropy BIP-39 mnemonic."""
    return KNOWN_MNEMONIC


@pytest.fixture
def known_address() -> str:
    """Return the MetaMask address at index 0 of the known mnemonic."""
    return KNOWN_ADDRESS


@pytest.fixture
def password() -> str:
    """Return a password that satisfies the password policy."""
    return VALID_PASSWORD


@pytest.fixture
def fast_kdf() -> KdfSpec:
    """Create a cheap PBKDF2 spec so tests do not pay for real key stretching."""
    return new_kdf_spec("pbkdf2", iterations=FAST_PBKDF2_ITERATIONS)


@pytest.fixture
def wallet_dir(tmp_path: Path) -> Path:
    """Return a wallet directory path (not created yet)."""
    return tmp_path / "wallets"


@pytest.fixture
def config(wallet_dir: Path) -> WalletConfig:
    """Create a test configuration using a fast KDF."""
    return WalletConfig(
        wallet_dir=wallet_dir,
        kdf="pbkdf2",
        pbkdf2_iterations=FAST_PBKDF2_ITERATIONS,
        log_level="DEBUG",
    )


@pytest.fixture
def manager(config: WalletConfig) -> WalletManager:
    """Create a wallet manager on a temporary directory."""
    return WalletManager(config)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temp dir and clear web3wallet environment variables."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in (
        "WEB3WALLET_DIR",
        "WEB3WALLET_NETWORK",
        "WEB3WALLET_KDF",
        "WEB3WALLET_LOG_LEVEL",
        "WEB3WALLET_LOW_MEMORY",
        "WEB3WALLET_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)
    return home
