"""
Redis Metrics Collector for Rankboard

Purpose
-------
In-memory collection of Redis operation latencies, success rates and health
check results, exposed through a query API for dashboards and `/health`.

Responsibilities
----------------
- Track operation counts and latencies per operation name
  (`TX:add_identity`, `ZREVRANK`, `READ:full_profile`, ...)
- Calculate percentile statistics (p50, p95, p99)
- Record background health check outcomes
- Warn on slow operations

Non-Responsibilities
--------------------
- No Redis commands
- No metric persistence or export format

Configuration Keys
------------------
- core.redis.metrics.slow_operation_ms   : int (default 100)
- core.redis.metrics.retention_samples   : int (default 1000)
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Deque, Dict

from rankboard.core.config import ConfigManager
from rankboard.core.logging.logger import get_logger

logger = get_logger(__name__)


def _latency_window() -> Deque[float]:
    return deque(maxlen=ConfigManager.get_int("core.redis.metrics.retention_samples", 1000))


@dataclass
class OperationMetrics:
    """Metrics for a single Redis operation name."""

    total_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_latency_ms: float = 0.0
    min_latency_ms: float = float("inf")
    max_latency_ms: float = 0.0
    latencies: Deque[float] = field(default_factory=_latency_window)

    def record(self, latency_ms: float, success: bool) -> None:
        self.total_count += 1
        if success:
            self.success_count += 1
        else:
            self.failure_count += 1

        self.total_latency_ms += latency_ms
        self.min_latency_ms = min(self.min_latency_ms, latency_ms)
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        self.latencies.append(latency_ms)

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.total_count if self.total_count > 0 else 0.0

    @property
    def success_rate(self) -> float:
        return (self.success_count / self.total_count * 100) if self.total_count > 0 else 0.0

    def percentile(self, p: int) -> float:
        if not self.latencies:
            return 0.0
        sorted_latencies = sorted(self.latencies)
        idx = int(len(sorted_latencies) * (p / 100.0))
        return sorted_latencies[min(idx, len(sorted_latencies) - 1)]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_count": self.total_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "success_rate_pct": round(self.success_rate, 2),
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "min_latency_ms": (
                round(self.min_latency_ms, 2) if self.min_latency_ms != float("inf") else 0.0
            ),
            "max_latency_ms": round(self.max_latency_ms, 2),
            "p50_latency_ms": round(self.percentile(50), 2),
            "p95_latency_ms": round(self.percentile(95), 2),
            "p99_latency_ms": round(self.percentile(99), 2),
        }


class RedisMetrics:
    """
    Centralized Redis metrics collector.

    All methods are class methods; state is process-wide and guarded by a
    threading.Lock.
    """

    _operations: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
    _health_checks: Deque[Dict[str, Any]] = deque(maxlen=100)
    _lock = Lock()
    _start_time: float = time.time()

    # ═════════════════════════════════════════════════════════════════════════
    # RECORDING
    # ═════════════════════════════════════════════════════════════════════════

    @classmethod
    def record_operation(
        cls,
        operation: str,
        latency_ms: float,
        success: bool = True,
    ) -> None:
        """
        Record a Redis operation metric.

        Parameters
        ----------
        operation : str
            Operation name
        latency_ms : float
            Operation latency in milliseconds
        success : bool
            Whether the operation succeeded
        """
        slow_threshold = ConfigManager.get_int("core.redis.metrics.slow_operation_ms", 100)

        with cls._lock:
            cls._operations[operation].record(latency_ms, success)

        if latency_ms > slow_threshold:
            logger.warning(
                "Slow Redis operation detected",
                extra={
                    "operation": operation,
                    "latency_ms": round(latency_ms, 2),
                    "threshold_ms": slow_threshold,
                },
            )

    @classmethod
    def record_health_check(cls, success: bool, latency_ms: float) -> None:
        with cls._lock:
            cls._health_checks.append(
                {"timestamp": time.time(), "success": success, "latency_ms": latency_ms}
            )

    # ═════════════════════════════════════════════════════════════════════════
    # RETRIEVAL
    # ═════════════════════════════════════════════════════════════════════════

    @classmethod
    def get_summary(cls) -> Dict[str, Any]:
        """Snapshot of every operation plus the health check window."""
        with cls._lock:
            operations_summary = {
                op_name: metrics.snapshot() for op_name, metrics in cls._operations.items()
            }

            total_checks = len(cls._health_checks)
            successful_checks = sum(1 for check in cls._health_checks if check["success"])
            avg_latency = (
                sum(check["latency_ms"] for check in cls._health_checks) / total_checks
                if total_checks > 0
                else 0.0
            )

            return {
                "uptime_seconds": round(time.time() - cls._start_time, 2),
                "operations": operations_summary,
                "health": {
                    "total_checks": total_checks,
                    "successful_checks": successful_checks,
                    "failed_checks": total_checks - successful_checks,
                    "avg_latency_ms": round(avg_latency, 2),
                },
            }

    @classmethod
    def get_operation_metrics(cls, operation: str) -> Dict[str, Any]:
        """Metrics for one operation name, or an empty dict if never recorded."""
        with cls._lock:
            metrics = cls._operations.get(operation)
            return metrics.snapshot() if metrics else {}

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._operations.clear()
            cls._health_checks.clear()
            cls._start_time = time.time()

        logger.info("Redis metrics reset")


__all__ = ["OperationMetrics", "RedisMetrics"]
