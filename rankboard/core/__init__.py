"""
Core infrastructure layer for Rankboard.

- Configuration management (Config, ConfigManager)
- Redis subsystem (RedisService, resilience, batch, metrics, health)
- Logging (structured logging, logger factory)
- Infrastructure exceptions (BackendFailureError, ConfigurationError)

This module is intentionally thin: no logic, no I/O.
"""

from rankboard.core.config import Config, ConfigManager
from rankboard.core.exceptions import (
    BackendFailureError,
    ConfigurationError,
    ErrorKind,
    ErrorSeverity,
    RankboardInfrastructureException,
)
from rankboard.core.logging.logger import LogContext, get_logger
from rankboard.core.redis.service import RedisService

__all__ = [
    "Config",
    "ConfigManager",
    "RedisService",
    "get_logger",
    "LogContext",
    "ErrorKind",
    "ErrorSeverity",
    "RankboardInfrastructureException",
    "BackendFailureError",
    "ConfigurationError",
]
