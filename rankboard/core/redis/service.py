"""
RedisService: async Redis infrastructure for Rankboard.

Purpose
-------
Own the single process-wide Redis client and the subsystems wrapped around
it (resilience, batch helpers, health monitor, metrics). The ranking backend
reaches Redis only through this service.

Responsibilities
----------------
- Connect (URL, password, socket timeout, pool size) and verify with PING
- Route every call through RedisResilience and record RedisMetrics
- Expose health, status and subsystem accessors
- Tear everything down on shutdown

Non-Responsibilities
--------------------
- No key layout or ranking semantics (see modules.leaderboard.redis_backend)
- No retries on behalf of callers: `execute()` makes exactly one attempt
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from rankboard.core.config.config import Config
from rankboard.core.logging.logger import get_logger
from rankboard.core.redis.batch import RedisBatchOperations
from rankboard.core.redis.health_monitor import RedisHealthMonitor
from rankboard.core.redis.metrics import RedisMetrics
from rankboard.core.redis.resilience import RedisResilience

logger = get_logger(__name__)


def _url_scheme(url: str) -> str:
    return url.split("://")[0] if "://" in url else "unknown"


class RedisService:
    """
    Async Redis infrastructure singleton.

    Example
    -------
    >>> await RedisService.initialize()
    >>> score = await RedisService.execute(
    ...     lambda: RedisService.client().zscore("default:global", "alice"),
    ...     operation_name="ZSCORE",
    ... )
    >>> await RedisService.shutdown()
    """

    _client: Optional[AsyncRedis] = None
    _resilience: Optional[RedisResilience] = None
    _health_monitor: Optional[RedisHealthMonitor] = None
    _batch_ops: Optional[RedisBatchOperations] = None
    _init_lock: Optional[asyncio.Lock] = None
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(
        cls,
        url: Optional[str] = None,
        password: Optional[str] = None,
        start_health_monitor: bool = True,
    ) -> None:
        """
        Initialize the Redis client and subsystems. Idempotent.

        Parameters
        ----------
        url : Optional[str]
            Overrides `Config.REDIS_URL`
        password : Optional[str]
            Overrides `Config.REDIS_PASSWORD`
        start_health_monitor : bool
            Start the background PING loop

        Raises
        ------
        RuntimeError
            If the connection or PING fails
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        # Created lazily so the lock binds to the running loop
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()

        async with cls._init_lock:
            if cls._client is not None:
                return

            url = url or Config.REDIS_URL
            password = password if password is not None else Config.REDIS_PASSWORD
            socket_timeout = Config.REDIS_SOCKET_TIMEOUT
            max_connections = Config.REDIS_MAX_CONNECTIONS

            start_time = time.monotonic()
            client: Optional[AsyncRedis] = None

            try:
                client = AsyncRedis.from_url(
                    url,
                    password=password or None,
                    socket_timeout=socket_timeout,
                    socket_connect_timeout=socket_timeout,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=max_connections,
                    retry_on_timeout=False,
                    health_check_interval=30,
                )
                await client.ping()
            except (RedisError, OSError) as exc:
                if client is not None:
                    await client.aclose()
                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": _url_scheme(url),
                    },
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = client
            cls._is_healthy = True
            cls._resilience = RedisResilience()
            cls._batch_ops = RedisBatchOperations(client)
            cls._health_monitor = RedisHealthMonitor(cls)
            if start_health_monitor:
                await cls._health_monitor.start()

            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": _url_scheme(url),
                    "socket_timeout_seconds": socket_timeout,
                    "max_connections": max_connections,
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Stop the health monitor and close the client. Safe when not initialized."""
        if cls._client is None and cls._health_monitor is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        client = cls._client
        health_monitor = cls._health_monitor

        cls._client = None
        cls._resilience = None
        cls._batch_ops = None
        cls._health_monitor = None
        cls._is_healthy = False

        # Monitor first so it doesn't race the close
        if health_monitor is not None:
            await health_monitor.stop()

        if client is not None:
            await client.aclose()
            logger.info("RedisService shutdown complete")

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """PING Redis; False when unreachable or not initialized."""
        if cls._client is None:
            cls._is_healthy = False
            return False

        try:
            pong = await cls._client.ping()
        except (RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        cls._is_healthy = bool(pong)
        return cls._is_healthy

    @classmethod
    def is_healthy(cls) -> bool:
        """Cached health status, no I/O."""
        return cls._is_healthy

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None

    @classmethod
    def get_status(cls) -> dict[str, Any]:
        return {
            "initialized": cls._client is not None,
            "healthy": cls._is_healthy,
            "resilience": cls._resilience.get_status() if cls._resilience else None,
            "health_monitor": cls._health_monitor.get_status() if cls._health_monitor else None,
            "metrics": RedisMetrics.get_summary(),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # CLIENT & UTILITIES ACCESS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    @classmethod
    def get_resilience(cls) -> RedisResilience:
        if cls._resilience is None:
            raise RuntimeError("RedisService resilience layer not initialized")
        return cls._resilience

    @classmethod
    def get_batch_operations(cls) -> RedisBatchOperations:
        if cls._batch_ops is None:
            raise RuntimeError("RedisService batch operations not initialized")
        return cls._batch_ops

    @classmethod
    def get_health_monitor(cls) -> RedisHealthMonitor:
        if cls._health_monitor is None:
            raise RuntimeError("RedisService health monitor not initialized")
        return cls._health_monitor

    # ═══════════════════════════════════════════════════════════════════════
    # EXECUTION (RESILIENCE + METRICS)
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def execute(
        cls,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
    ) -> Any:
        """
        Run one Redis operation through the circuit breaker, single attempt.

        Parameters
        ----------
        operation : Callable[[], Awaitable[Any]]
            Zero-argument factory for the Redis call
        operation_name : str
            Metric and log name (e.g. "TX:add_identity", "ZREVRANK")

        Returns
        -------
        Any
            The Redis reply

        Raises
        ------
        CircuitBreakerOpenError
            If the circuit is open
        redis.exceptions.RedisError, OSError
            Propagated from the client
        """
        start_time = time.monotonic()
        try:
            result = await cls.get_resilience().execute(
                operation=operation,
                operation_name=operation_name,
                max_attempts=1,
            )
        except Exception:
            RedisMetrics.record_operation(
                operation_name, (time.monotonic() - start_time) * 1000, success=False
            )
            raise

        RedisMetrics.record_operation(
            operation_name, (time.monotonic() - start_time) * 1000, success=True
        )
        return result


__all__ = ["RedisService"]
