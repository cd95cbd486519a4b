"""
Configuration constants for the tastesim similarity library.

This module centralizes tunable parameters. Values can be overridden via
environment variables; invalid values fall back to defaults with a warning.
"""
import os
import logging

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_log_level_env(key: str, default: str) -> str:
    raw = os.environ.get(key, default).strip().upper()
    if not isinstance(logging.getLevelName(raw), int):
        logger.warning(f"Invalid {key}='{raw}', using default {default}")
        return default
    return raw


# File data model
MIN_RELOAD_INTERVAL = _get_float_env("TASTESIM_MIN_RELOAD_INTERVAL", 60.0, min_val=0.0)  # seconds
FILE_COMMENT_PREFIX = "#"

# Logging
LOG_LEVEL = _get_log_level_env("TASTESIM_LOG_LEVEL", "WARNING")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """
    Install a basic root handler for applications embedding the library.

    The library itself never adds handlers; call this from an entry point.
    """
    logging.basicConfig(level=level if level is not None else LOG_LEVEL, format=LOG_FORMAT)
