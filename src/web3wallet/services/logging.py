"""
Logging - Application logging configuration.

Console output only (stderr), so JSON on stdout stays machine-readable.
Secrets, passwords and mnemonics are never passed to a logger.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: int = logging.WARNING) -> None:
    """
    Configure Python logging for the application.

    Sets up the package logger with a stderr console handler. Calling it
    again only adjusts the level.

    Args:
        level: Logging level (default: WARNING)
    """
    logger = logging.getLogger("web3wallet")
    logger.setLevel(level)

    # Only add a handler once
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
