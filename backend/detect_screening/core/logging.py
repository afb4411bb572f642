"""Logging configuration for the screening service."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger with a single stdout handler.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Raises:
        ValueError: If the level name is not a known logging level.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers so repeated calls don't duplicate output
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
