"""Tests for configuration management."""

import json
import logging
from pathlib import Path

import pytest

from web3wallet.config import DEFAULT_PBKDF2_ITERATIONS, WalletConfig, load_config
from web3wallet.errors import UnsupportedKdf, UnsupportedNetwork


class TestWalletConfig:
    """Tests for WalletConfig validation."""

    def test_defaults(self, isolated_home: Path) -> None:
        """Test the default values."""
        config = WalletConfig()
        assert config.wallet_dir == isolated_home / ".web3wallet" / "wallets"
        assert config.default_network == "mainnet"
        assert config.kdf == "argon2id"
        assert config.pbkdf2_iterations == DEFAULT_PBKDF2_ITERATIONS
        assert config.low_memory is False
        assert config.log_level == "WARNING"

    def test_wallet_dir_coerced_to_path(self, tmp_path: Path) -> None:
        """Test that a string wallet_dir becomes a Path."""
        config = WalletConfig(wallet_dir=str(tmp_path))
        assert config.wallet_dir == tmp_path

    def test_log_level_normalized(self) -> None:
        """Test that the log level is upper-cased."""
        config = WalletConfig(log_level="debug")
        assert config.log_level == "DEBUG"
        assert config.log_level_value == logging.DEBUG

    def test_unknown_network(self) -> None:
        """Test that an unknown network is rejected."""
        with pytest.raises(UnsupportedNetwork):
            WalletConfig(default_network="ropsten")

    def test_unknown_kdf(self) -> None:
        """Test that an unknown KDF is rejected."""
        with pytest.raises(UnsupportedKdf):
            WalletConfig(kdf="scrypt")

    def test_bad_log_level(self) -> None:
        """Test that an unknown log level is rejected."""
        with pytest.raises(ValueError, match="Unknown log level"):
            WalletConfig(log_level="LOUD")

    @pytest.mark.parametrize("iterations", [0, -5, True, "1000"])
    def test_bad_pbkdf2_iterations(self, iterations: object) -> None:
        """Test that pbkdf2_iterations must be a positive integer."""
        with pytest.raises(ValueError, match="pbkdf2_iterations"):
            WalletConfig(pbkdf2_iterations=iterations)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"wallet_dir": 5},
            {"default_network": 1},
            {"kdf": None},
            {"log_level": 10},
            {"low_memory": "yes"},
        ],
    )
    def test_bad_types(self, kwargs: dict) -> None:
        """Test that values of the wrong type raise ValueError."""
        with pytest.raises(ValueError, match="must be"):
            WalletConfig(**kwargs)

    def test_frozen(self) -> None:
        """Test that the configuration cannot be mutated."""
        config = WalletConfig()
        with pytest.raises(AttributeError):
            config.kdf = "pbkdf2"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_no_settings_file(self, tmp_path: Path) -> None:
        """Test that a missing settings file gives the defaults."""
        config = load_config(tmp_path / "missing.json", environ={})
        assert config == WalletConfig()

    def test_settings_file(self, tmp_path: Path) -> None:
        """Test values read from the settings file."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({
            "wallet_dir": str(tmp_path / "w"),
            "default_network": "sepolia",
            "kdf": "pbkdf2",
            "pbkdf2_iterations": 5000,
        }))
        config = load_config(settings, environ={})
        assert config.wallet_dir == tmp_path / "w"
        assert config.default_network == "sepolia"
        assert config.kdf == "pbkdf2"
        assert config.pbkdf2_iterations == 5000

    def test_default_settings_path(self, isolated_home: Path) -> None:
        """Test that ~/.web3wallet/settings.json is read by default."""
        app_dir = isolated_home / ".web3wallet"
        app_dir.mkdir()
        (app_dir / "settings.json").write_text(json.dumps({"default_network": "holesky"}))
        assert load_config(environ={}).default_network == "holesky"

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        """Test that environment variables win over the settings file."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"default_network": "sepolia", "kdf": "pbkdf2"}))
        environ = {
            "WEB3WALLET_NETWORK": "goerli",
            "WEB3WALLET_KDF": "argon2id",
            "WEB3WALLET_DIR": str(tmp_path / "env-wallets"),
            "WEB3WALLET_LOG_LEVEL": "info",
        }
        config = load_config(settings, environ=environ)
        assert config.default_network == "goerli"
        assert config.kdf == "argon2id"
        assert config.wallet_dir == tmp_path / "env-wallets"
        assert config.log_level == "INFO"

    def test_unknown_keys_ignored(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Test that unknown settings keys are skipped with a warning."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"auto_lock_minutes": 5}))
        with caplog.at_level(logging.WARNING, logger="web3wallet"):
            config = load_config(settings, environ={})
        assert config == WalletConfig()
        assert "auto_lock_minutes" in caplog.text

    def test_invalid_json_falls_back(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a corrupt settings file is ignored with a warning."""
        settings = tmp_path / "settings.json"
        settings.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="web3wallet"):
            config = load_config(settings, environ={})
        assert config == WalletConfig()
        assert "Failed to load settings" in caplog.text

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        """Test that a bad value in the settings file is reported."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"default_network": "ropsten"}))
        with pytest.raises(UnsupportedNetwork):
            load_config(settings, environ={})

    def test_low_memory_from_settings(self, tmp_path: Path) -> None:
        """Test enabling the low-memory Argon2id profile in the settings file."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"low_memory": True}))
        assert load_config(settings, environ={}).low_memory is True

    @pytest.mark.parametrize("value,expected", [("1", True), ("On", True), ("false", False)])
    def test_low_memory_from_environment(self, tmp_path: Path, value: str, expected: bool) -> None:
        """Test the WEB3WALLET_LOW_MEMORY flag."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"low_memory": not expected}))
        config = load_config(settings, environ={"WEB3WALLET_LOW_MEMORY": value})
        assert config.low_memory is expected

    def test_bad_low_memory_flag(self, tmp_path: Path) -> None:
        """Test that an unrecognized flag value is rejected."""
        with pytest.raises(ValueError, match="WEB3WALLET_LOW_MEMORY"):
            load_config(tmp_path / "missing.json", environ={"WEB3WALLET_LOW_MEMORY": "maybe"})

    def test_wrong_type_in_settings(self, tmp_path: Path) -> None:
        """Test that a wrongly typed settings value raises ValueError."""
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"wallet_dir": 5}))
        with pytest.raises(ValueError, match="wallet_dir"):
            load_config(settings, environ={})
