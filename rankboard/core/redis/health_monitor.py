"""
Redis Health Monitor for Rankboard

Purpose
-------
Background PING loop that classifies Redis as HEALTHY, DEGRADED or UNHEALTHY
and reports it through `/health` and structured logs.

Non-Responsibilities
--------------------
- No circuit breaking (see resilience.py)
- No ranking logic

Configuration Keys
------------------
- core.redis.health.enabled               : bool (default True)
- core.redis.health.check_interval_seconds: int (default 30)
- core.redis.health.timeout_seconds       : int (default 5)
- core.redis.health.latency_warning_ms    : int (default 50)
- core.redis.health.latency_critical_ms   : int (default 200)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Any, Deque, Dict, Optional

from redis.exceptions import RedisError

from rankboard.core.config import ConfigManager
from rankboard.core.logging.logger import get_logger
from rankboard.core.redis.metrics import RedisMetrics

if TYPE_CHECKING:
    from rankboard.core.redis.service import RedisService

logger = get_logger(__name__)


class HealthState(Enum):
    """Redis health states."""

    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"  # Operational but slow
    UNHEALTHY = "UNHEALTHY"


class RedisHealthMonitor:
    """
    Periodic Redis health checks with degradation detection.

    Parameters
    ----------
    redis_service : type[RedisService]
        The RedisService singleton type to monitor
    """

    RECOVERY_SUCCESSES = 3
    UNHEALTHY_FAILURES = 2

    def __init__(self, redis_service: type[RedisService]) -> None:
        self._redis_service = redis_service
        self._state: HealthState = HealthState.HEALTHY
        self._is_running: bool = False
        self._monitor_task: Optional[asyncio.Task] = None

        self._check_history: Deque[Dict[str, Any]] = deque(maxlen=100)
        self._consecutive_failures: int = 0
        self._consecutive_successes: int = 0
        self._last_check_time: Optional[float] = None
        self._last_state_change: Optional[float] = None

        self._enabled = ConfigManager.get_bool("core.redis.health.enabled", True)
        self._check_interval = ConfigManager.get_int("core.redis.health.check_interval_seconds", 30)
        self._timeout = ConfigManager.get_int("core.redis.health.timeout_seconds", 5)
        self._latency_warning = ConfigManager.get_int("core.redis.health.latency_warning_ms", 50)
        self._latency_critical = ConfigManager.get_int("core.redis.health.latency_critical_ms", 200)

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    async def start(self) -> None:
        if not self._enabled:
            logger.info("RedisHealthMonitor disabled by configuration")
            return
        if self._is_running:
            logger.warning("RedisHealthMonitor already running")
            return

        self._is_running = True
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info(
            "RedisHealthMonitor started",
            extra={
                "check_interval_seconds": self._check_interval,
                "timeout_seconds": self._timeout,
            },
        )

    async def stop(self) -> None:
        if not self._is_running:
            return

        self._is_running = False
        if self._monitor_task:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            self._monitor_task = None

        logger.info("RedisHealthMonitor stopped")

    # ═══════════════════════════════════════════════════════════════════════
    # MONITORING LOOP
    # ═══════════════════════════════════════════════════════════════════════

    async def _monitor_loop(self) -> None:
        while self._is_running:
            await self._perform_health_check()
            await asyncio.sleep(self._check_interval)

    async def _ping(self) -> Dict[str, Any]:
        start_time = time.monotonic()
        try:
            passed = await asyncio.wait_for(
                self._redis_service.health_check(),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return {
                "passed": False,
                "latency_ms": self._timeout * 1000.0,
                "error": "Health check timed out",
            }
        except (RedisError, OSError) as exc:
            return {
                "passed": False,
                "latency_ms": (time.monotonic() - start_time) * 1000,
                "error": str(exc),
                "error_type": type(exc).__name__,
            }
        return {
            "passed": bool(passed),
            "latency_ms": (time.monotonic() - start_time) * 1000,
            "error": None,
        }

    async def _perform_health_check(self) -> None:
        result = await self._ping()
        result["timestamp"] = time.time()

        if not result["passed"]:
            logger.warning(
                "Redis health check failed",
                extra={"error": result.get("error"), "latency_ms": round(result["latency_ms"], 2)},
            )

        self._check_history.append(result)
        self._last_check_time = result["timestamp"]
        RedisMetrics.record_health_check(result["passed"], result["latency_ms"])
        self._update_health_state(result["passed"], result["latency_ms"])

    # ═══════════════════════════════════════════════════════════════════════
    # STATE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    def _update_health_state(self, check_passed: bool, latency_ms: float) -> None:
        old_state = self._state

        if check_passed:
            self._consecutive_successes += 1
            self._consecutive_failures = 0

            if latency_ms >= self._latency_critical:
                new_state = HealthState.DEGRADED
            elif latency_ms >= self._latency_warning:
                new_state = old_state if old_state == HealthState.DEGRADED else HealthState.HEALTHY
            elif self._consecutive_successes >= self.RECOVERY_SUCCESSES:
                new_state = HealthState.HEALTHY
            else:
                new_state = old_state
        else:
            self._consecutive_failures += 1
            self._consecutive_successes = 0
            new_state = (
                HealthState.UNHEALTHY
                if self._consecutive_failures >= self.UNHEALTHY_FAILURES
                else HealthState.DEGRADED
            )

        if new_state != old_state:
            self._state = new_state
            self._last_state_change = time.time()
            logger.warning(
                "Redis health state changed",
                extra={
                    "old_state": old_state.value,
                    "new_state": new_state.value,
                    "consecutive_failures": self._consecutive_failures,
                    "latency_ms": round(latency_ms, 2),
                },
            )

    # ═══════════════════════════════════════════════════════════════════════
    # STATUS API
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def state(self) -> HealthState:
        return self._state

    def is_healthy(self) -> bool:
        return self._state == HealthState.HEALTHY

    def get_status(self) -> Dict[str, Any]:
        recent_checks = list(self._check_history)[-20:]
        error_rate = (
            sum(1 for check in recent_checks if not check["passed"]) / len(recent_checks)
            if recent_checks
            else 0.0
        )
        avg_latency = (
            sum(check["latency_ms"] for check in recent_checks) / len(recent_checks)
            if recent_checks
            else 0.0
        )

        return {
            "state": self._state.value,
            "is_running": self._is_running,
            "consecutive_failures": self._consecutive_failures,
            "consecutive_successes": self._consecutive_successes,
            "last_check_time": self._last_check_time,
            "last_state_change": self._last_state_change,
            "total_checks": len(self._check_history),
            "error_rate": round(error_rate, 3),
            "avg_latency_ms": round(avg_latency, 2),
            "check_interval_seconds": self._check_interval,
        }

    async def check_now(self) -> Dict[str, Any]:
        """Run one check immediately and fold it into the health state."""
        await self._perform_health_check()
        result = dict(self._check_history[-1])
        result["latency_ms"] = round(result["latency_ms"], 2)
        return result


__all__ = ["HealthState", "RedisHealthMonitor"]
