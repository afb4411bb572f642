"""Core application configuration and utilities."""

from detect_screening.core.config import Settings, settings
from detect_screening.core.logging import configure_logging

__all__ = [
    # Config
    "Settings",
    "settings",
    # Logging
    "configure_logging",
]
