"""
Configuration error hierarchy for Rankboard.

Purpose
-------
Provides exceptions for dynamic configuration operations with clear
error classification.

Non-Responsibilities
--------------------
- Error logging (handled by logger)
- Static env validation failures (raised as `ConfigurationError` from
  `rankboard.core.exceptions`)

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigWriteError (in-memory override failures)
└── ConfigInitializationError (YAML load failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     ConfigManager.set("core.redis", 5)
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """
    pass


class ConfigWriteError(ConfigError):
    """Raised when an override cannot be applied to the cached tree."""
    pass


class ConfigInitializationError(ConfigError):
    """Raised when YAML defaults cannot be loaded at startup."""
    pass


__all__ = ["ConfigError", "ConfigWriteError", "ConfigInitializationError"]
