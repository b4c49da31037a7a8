"""Core application configuration and utilities.

This package contains core functionality including:
- Configuration management (config.py)
- Logging setup (logging.py)
- Common exception base classes (exceptions.py)
"""

from graphpatch.core.config import Settings, get_settings, settings
from graphpatch.core.exceptions import AppError, ConfigurationError

__all__ = [
    "AppError",
    "ConfigurationError",
    "Settings",
    "get_settings",
    "settings",
]
