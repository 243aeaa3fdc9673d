"""
Services package - Process-level helpers for the CLI.

Contains:
- configure_logging: console logging setup
- render / render_error: table and JSON output
"""

from .logging import configure_logging
from .output import OUTPUT_FORMATS, render, render_error

__all__ = [
    "configure_logging",
    "OUTPUT_FORMATS",
    "render",
    "render_error",
]
