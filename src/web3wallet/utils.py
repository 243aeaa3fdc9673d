"""
Shared utility functions for web3wallet.

Contains path helpers, file permission helpers and alias validation.
"""

import logging
import os
import re
from pathlib import Path

from .errors import InvalidAlias

logger = logging.getLogger(__name__)

APP_DIR_NAME = ".web3wallet"
SECURE_FILE_MODE = 0o600
SECURE_DIR_MODE = 0o700

KEYSTORE_SUFFIX = ".json"

_ALIAS_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


def get_app_dir() -> Path:
    """Get the application data directory (~/.web3wallet)."""
    return Path.home() / APP_DIR_NAME


def get_wallet_dir() -> Path:
    """Get the default wallet storage directory."""
    return get_app_dir() / "wallets"


def get_settings_path() -> Path:
    """Get path to settings file."""
    return get_app_dir() / "settings.json"


def set_secure_permissions(filepath: Path, mode: int = SECURE_FILE_MODE) -> None:
    """
    Set restrictive file permissions on Unix systems.

    Sets file to mode 0600 (owner read/write only) to protect wallet data.
    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == "posix":
        try:
            os.chmod(filepath, mode)
        except OSError as e:
            # Best effort - don't fail a save because chmod failed
            logger.warning("Could not restrict permissions on %s: %s", filepath, e)


def validate_alias(alias: str) -> str:
    """
    Check that an alias is usable as a file name.

    Letters, digits, '_', '.', '-', starting with a letter or digit,
    at most 64 characters, no '..'.

    Raises:
        InvalidAlias: alias is empty, too long, or could escape the wallet dir
    """
    if not isinstance(alias, str) or not _ALIAS_RE.match(alias) or ".." in alias:
        raise InvalidAlias(
            f"Invalid wallet alias {alias!r}: use 1-64 letters, digits, '_', '.' or '-', "
            "starting with a letter or digit"
        )
    return alias


def alias_from_name(name: str) -> str:
    """Accept either 'alias' or 'alias.json'."""
    if isinstance(name, str) and name.endswith(KEYSTORE_SUFFIX):
        name = name[: -len(KEYSTORE_SUFFIX)]
    return validate_alias(name)
