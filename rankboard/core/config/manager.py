"""
ConfigManager: dynamic, dot-notation configuration access for Rankboard.

Purpose
-------
- Provide hierarchical, dot-notation access to infrastructure tunables
  (e.g. `core.redis.resilience.circuit.failure_threshold`).
- Back configuration with YAML defaults from the `config/` directory.
- Allow in-process overrides without a restart (used by tests and operators).

Responsibilities
----------------
- Load and deep-merge YAML defaults from `config/`.
- Serve reads from an in-memory cache with default fallback.
- Track hit/miss/fallback counters for observability.

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live only in memory.
- Every infra component reads its tunables with a hard-coded fallback, so a
  missing `config/` directory never prevents startup.
- The manager is a classmethod singleton, like `Config` and `RedisService`.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from rankboard.core.config.config import Config
from rankboard.core.config.errors import ConfigInitializationError, ConfigWriteError


# Stdlib logger: the logging subsystem itself imports rankboard.core.config.
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConfigMetrics:
    gets: int = 0
    sets: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    fallback_to_defaults: int = 0
    errors: int = 0
    total_get_time_ms: float = 0.0

    def reset(self) -> None:
        for field_name in asdict(self):
            setattr(self, field_name, type(getattr(self, field_name))())


class ConfigManager:
    """
    Dynamic configuration with YAML defaults and in-memory overrides.

    Features
    --------
    - Hierarchical config access with dot notation.
    - Recursive YAML merge from `config/` and subdirectories.
    - Overrides via `set()`; `clear_cache()` returns to a clean state.
    - Metrics and health snapshots.
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Path = Config.PROJECT_ROOT / "config"
    _metrics: ConfigMetrics = ConfigMetrics()

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls) -> int:
        """
        Recursively load all YAML config files from the config directory.

        Returns the number of files merged into `_defaults`. Individual file
        failures are logged and skipped.
        """
        config_dir = cls._config_dir
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return 0

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        return loaded_count

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults into the cache (idempotent).

        Raises
        ------
        ConfigInitializationError
            If the YAML tree cannot be merged into a usable mapping.
        """
        if cls._initialized:
            return

        if config_dir is not None:
            cls._config_dir = Path(config_dir)

        try:
            loaded = cls._load_yaml_configs()
        except Exception as exc:
            raise ConfigInitializationError(f"Failed to load YAML configs: {exc}") from exc

        cls._cache = copy.deepcopy(cls._defaults)
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "yaml_file_count": loaded,
                "total_cache_keys": len(cls._cache),
                "config_dir": str(cls._config_dir),
            },
        )

    # =========================================================================
    # READ API
    # =========================================================================

    @classmethod
    def _traverse(cls, root: Dict[str, Any], key: str) -> Any:
        value: Any = root
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
            if value is None:
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> ConfigManager.get("core.redis.resilience.retry.max_attempts", 1)
        1
        """
        start_time = time.perf_counter()
        cls._metrics.gets += 1

        if not cls._initialized:
            cls.initialize()

        try:
            value = cls._traverse(cls._cache, key)
            if value is not None:
                cls._metrics.cache_hits += 1
                return value

            cls._metrics.cache_misses += 1
            fallback = cls._traverse(cls._defaults, key)
            if fallback is not None:
                cls._metrics.fallback_to_defaults += 1
                return fallback
            return default
        finally:
            cls._metrics.total_get_time_ms += (time.perf_counter() - start_time) * 1000

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        """Typed read; falls back to `default` on a missing or mistyped value."""
        val = cls.get(key)
        if isinstance(val, int) and not isinstance(val, bool):
            return val
        return default

    @classmethod
    def get_float(cls, key: str, default: float) -> float:
        val = cls.get(key)
        if isinstance(val, (int, float)) and not isinstance(val, bool):
            return float(val)
        return default

    @classmethod
    def get_bool(cls, key: str, default: bool) -> bool:
        val = cls.get(key)
        if isinstance(val, bool):
            return val
        return default

    # =========================================================================
    # WRITE API
    # =========================================================================

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """
        Override a configuration value in memory.

        Raises
        ------
        ConfigWriteError
            If an intermediate segment of `key` already holds a non-dict value.
        """
        if not cls._initialized:
            cls.initialize()

        parts = key.split(".")
        node: Dict[str, Any] = cls._cache
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                cls._metrics.errors += 1
                raise ConfigWriteError(
                    f"Cannot set '{key}': '{part}' holds a non-mapping value"
                )
            node = child

        old_value = node.get(parts[-1])
        node[parts[-1]] = value
        cls._metrics.sets += 1

        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "old_value": old_value, "new_value": value},
        )

    # =========================================================================
    # CACHE CONTROL & METRICS
    # =========================================================================

    @classmethod
    def clear_cache(cls) -> None:
        """Drop cache, defaults and overrides; the next read reloads YAML."""
        cls._cache.clear()
        cls._defaults.clear()
        cls._initialized = False
        logger.debug("ConfigManager cache cleared")

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        metrics = asdict(cls._metrics)
        lookups = cls._metrics.cache_hits + cls._metrics.cache_misses
        metrics["cache_hit_rate"] = (
            round(cls._metrics.cache_hits / lookups * 100, 2) if lookups else 0.0
        )
        metrics["avg_get_time_ms"] = (
            round(cls._metrics.total_get_time_ms / cls._metrics.gets, 4)
            if cls._metrics.gets
            else 0.0
        )
        return metrics

    @classmethod
    def reset_metrics(cls) -> None:
        cls._metrics.reset()

    @classmethod
    def health_snapshot(cls) -> Dict[str, Any]:
        """Compact health snapshot suitable for infra dashboards."""
        return {
            "status": "healthy" if cls._initialized and not cls._metrics.errors else "degraded",
            "initialized": cls._initialized,
            "cached_configs": len(cls._cache),
            "errors": cls._metrics.errors,
            "config_dir": str(cls._config_dir),
        }


__all__ = ["ConfigManager", "ConfigMetrics"]
