"""Core utilities for the PixelVault application."""

from pixelvault.app.core.config import Settings, settings
from pixelvault.app.core.logging import get_logger, setup_logging
from pixelvault.app.core.sanitize import is_safe_identifier, sanitize_name

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
    "sanitize_name",
    "is_safe_identifier",
]
