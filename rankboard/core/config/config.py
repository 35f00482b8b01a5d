"""
Static configuration management for Rankboard.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at process startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Track configuration loading metrics

Non-Responsibilities
--------------------
- Dynamic, dot-notation configuration (handled by ConfigManager)
- Secrets management (use environment variables)

Configuration Categories
------------------------
1. Redis: connection and client settings
2. Environment: environment type, debug mode, logging
3. Leaderboard: namespace, top-K size, score precision, advisory limits
4. API: bind address for the HTTP facade

Environment Variables
---------------------
- REDIS_URL: Redis connection string (default: redis://localhost:6379/0)
- REDIS_PASSWORD: Optional Redis password
- ENVIRONMENT: Environment type (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- LEADERBOARD_NAMESPACE: Key prefix (default: "default")
- LEADERBOARD_TOP_K: Top-K size (default: 10)
- LEADERBOARD_FLOAT_SCORES: Keep fractional scores (default: False)

See individual attributes for complete list.
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from rankboard.core.exceptions import ConfigurationError

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger not yet initialized during bootstrap
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


class Config:
    """
    Centralized static configuration for Rankboard.

    All configuration values are loaded from environment variables with
    sensible defaults. Invalid values fall back to defaults and are recorded
    in the load metrics rather than raising.

    Usage
    -----
    >>> Config.REDIS_URL
    'redis://localhost:6379/0'
    >>> Config.LEADERBOARD_TOP_K
    10
    """

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: int = 5

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = True

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"

    # =========================================================================
    # Leaderboard Configuration
    # =========================================================================

    LEADERBOARD_NAMESPACE: str = "default"
    LEADERBOARD_TOP_K: int = 10
    LEADERBOARD_FLOAT_SCORES: bool = False
    LEADERBOARD_MAX_USERS: int = 1_000_000  # advisory, not enforced
    LEADERBOARD_MAX_ENTITIES: int = 200  # advisory, not enforced

    # =========================================================================
    # API Configuration
    # =========================================================================

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000
    API_MAX_ENTITY_LENGTH: int = 2

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls) -> None:
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Example
        -------
        >>> Config._safe_int("LEADERBOARD_TOP_K", 10, min_val=1, max_val=1000)
        10
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _parse_bool(cls, key: str, raw_value: str) -> Optional[bool]:
        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        error = f"{key}='{raw_value}' is not a valid boolean, ignoring"
        logging.warning(error)
        if cls._metrics:
            cls._metrics.record_validation_error(key, error)
        return None

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        value = cls._parse_bool(key, raw_value)
        if value is None:
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, None, None)
            return None

        value = cls._parse_bool(key, raw_value)
        if cls._metrics and value is not None:
            cls._metrics.record_env_load(key, True, value, None)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        """Safely get string from environment; empty values fall back to default."""
        cls._init_metrics()

        raw_value = os.getenv(key)
        from_env = bool(raw_value)
        value = raw_value if raw_value else default

        if cls._metrics:
            cls._metrics.record_env_load(key, from_env, value, default)

        return value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; may be called again to pick
        up changed environment variables (tests do this).
        """
        cls._init_metrics()

        # Redis
        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
        cls.REDIS_MAX_CONNECTIONS = cls._safe_int(
            "REDIS_MAX_CONNECTIONS", 50, min_val=1, max_val=500
        )
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int(
            "REDIS_SOCKET_TIMEOUT", 5, min_val=1, max_val=60
        )

        # Environment
        cls.ENVIRONMENT = Environment.from_string(cls._safe_str("ENVIRONMENT", "development")).value
        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", True)

        # Leaderboard
        cls.LEADERBOARD_NAMESPACE = cls._safe_str("LEADERBOARD_NAMESPACE", "default")
        cls.LEADERBOARD_TOP_K = cls._safe_int(
            "LEADERBOARD_TOP_K", 10, min_val=1, max_val=1000
        )
        cls.LEADERBOARD_FLOAT_SCORES = cls._safe_bool("LEADERBOARD_FLOAT_SCORES", False)
        cls.LEADERBOARD_MAX_USERS = cls._safe_int(
            "LEADERBOARD_MAX_USERS", 1_000_000, min_val=1
        )
        cls.LEADERBOARD_MAX_ENTITIES = cls._safe_int(
            "LEADERBOARD_MAX_ENTITIES", 200, min_val=1
        )

        # API
        cls.API_HOST = cls._safe_str("API_HOST", "0.0.0.0")
        cls.API_PORT = cls._safe_int("API_PORT", 3000, min_val=1, max_val=65535)
        cls.API_MAX_ENTITY_LENGTH = cls._safe_int(
            "API_MAX_ENTITY_LENGTH", 2, min_val=1, max_val=256
        )

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and validate configuration values on startup.

        Raises
        ------
        ConfigurationError:
            If validation fails in production. Outside production the failure
            is logged and defaults stay in effect.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls._init_metrics()

        try:
            cls.load()

            if not cls.REDIS_URL.startswith(("redis://", "rediss://", "unix://")):
                raise ConfigurationError(
                    "REDIS_URL", f"unsupported scheme in {cls.REDIS_URL!r}"
                )

            valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            if cls.is_production():
                if "localhost" in cls.REDIS_URL:
                    logger.warning(
                        "Production environment using localhost Redis - "
                        "this may be incorrect"
                    )
                if cls.DEBUG:
                    logger.warning("DEBUG mode enabled in production!")

            cls._validated = True

            if cls._metrics and cls._metrics.validation_errors:
                logger.warning(
                    f"Configuration warnings: {cls._metrics.validation_errors}"
                )

        except Exception as e:
            logger.warning(f"Config validation warning (safe for tests): {e}")
            if cls.ENVIRONMENT.lower() == "production":
                logger.error("Configuration validation failed in production!")
                raise

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["leaderboard_namespace"]
        'default'
        """
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "redis_password_set": bool(cls.REDIS_PASSWORD),
            "leaderboard_namespace": cls.LEADERBOARD_NAMESPACE,
            "leaderboard_top_k": cls.LEADERBOARD_TOP_K,
            "leaderboard_float_scores": cls.LEADERBOARD_FLOAT_SCORES,
        }


# Auto-validate on import
Config.validate()
