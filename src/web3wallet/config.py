"""
Configuration - Wallet settings resolved once at startup.

Precedence: defaults < settings.json < environment variables.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import UnsupportedKdf
from .models.keystore import KDF_ARGON2ID, SUPPORTED_KDFS
from .networks import DEFAULT_NETWORK, get_network_by_name
from .utils import get_settings_path, get_wallet_dir

logger = logging.getLogger(__name__)

ENV_WALLET_DIR = "WEB3WALLET_DIR"
ENV_NETWORK = "WEB3WALLET_NETWORK"
ENV_KDF = "WEB3WALLET_KDF"
ENV_LOG_LEVEL = "WEB3WALLET_LOG_LEVEL"
ENV_LOW_MEMORY = "WEB3WALLET_LOW_MEMORY"
ENV_PASSWORD = "WEB3WALLET_PASSWORD"

DEFAULT_PBKDF2_ITERATIONS = 600_000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")

# settings.json key -> environment variable
_ENV_OVERRIDES = {
    "wallet_dir": ENV_WALLET_DIR,
    "default_network": ENV_NETWORK,
    "kdf": ENV_KDF,
    "log_level": ENV_LOG_LEVEL,
}


@dataclass(frozen=True)
class WalletConfig:
    """Settings passed to WalletManager."""
    wallet_dir: Path = field(default_factory=get_wallet_dir)
    default_network: str = DEFAULT_NETWORK
    kdf: str = KDF_ARGON2ID
    pbkdf2_iterations: int = DEFAULT_PBKDF2_ITERATIONS
    low_memory: bool = False
    log_level: str = "WARNING"

    def __post_init__(self):
        if not isinstance(self.wallet_dir, (str, os.PathLike)):
            raise ValueError(f"wallet_dir must be a path, got {self.wallet_dir!r}")
        for name in ("default_network", "kdf", "log_level"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string, got {getattr(self, name)!r}")
        if not isinstance(self.low_memory, bool):
            raise ValueError(f"low_memory must be true or false, got {self.low_memory!r}")

        object.__setattr__(self, "wallet_dir", Path(self.wallet_dir).expanduser())
        object.__setattr__(self, "log_level", self.log_level.upper())

        get_network_by_name(self.default_network)
        if self.kdf not in SUPPORTED_KDFS:
            raise UnsupportedKdf(f"Unsupported KDF: {self.kdf}")
        if isinstance(self.pbkdf2_iterations, bool) or not isinstance(self.pbkdf2_iterations, int) \
                or self.pbkdf2_iterations < 1:
            raise ValueError(f"pbkdf2_iterations must be a positive integer, got {self.pbkdf2_iterations!r}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)

    def to_dict(self) -> dict:
        return {
            "wallet_dir": str(self.wallet_dir),
            "default_network": self.default_network,
            "kdf": self.kdf,
            "pbkdf2_iterations": self.pbkdf2_iterations,
            "low_memory": self.low_memory,
            "log_level": self.log_level,
        }


def _parse_flag(name: str, value: str) -> bool:
    """Environment flag: 1/true/yes/on or 0/false/no/off."""
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be true or false, got {value!r}")


def _load_settings(settings_path: Path) -> dict:
    """Load settings from disk ({} when the file is absent)."""
    if not settings_path.exists():
        return {}
    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to load settings from %s: %s", settings_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", settings_path)
        return {}
    return data


def load_config(config_path: Optional[str | Path] = None,
                environ: Optional[dict] = None) -> WalletConfig:
    """
    Build the configuration.

    Args:
        config_path: settings file (default ~/.web3wallet/settings.json)
        environ: environment mapping (default os.environ)
    """
    environ = os.environ if environ is None else environ
    settings_path = Path(config_path) if config_path else get_settings_path()

    values = {}
    for key, value in _load_settings(settings_path).items():
        if key in WalletConfig.__dataclass_fields__:
            values[key] = value
        else:
            logger.warning("Ignoring unknown setting: %s", key)

    for key, env_name in _ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[key] = environ[env_name]
    if environ.get(ENV_LOW_MEMORY):
        values["low_memory"] = _parse_flag(ENV_LOW_MEMORY, environ[ENV_LOW_MEMORY])

    return WalletConfig(**values)
