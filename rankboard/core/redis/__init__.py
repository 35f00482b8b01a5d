"""
Redis infrastructure for Rankboard.

- service.py: client lifecycle and resilient execution
- resilience.py: circuit breaker and retry policy
- batch.py: MULTI/EXEC and read pipelines, chunked HMGET
- metrics.py: latency and success-rate collection
- health_monitor.py: background PING loop
"""

from rankboard.core.redis.batch import RedisBatchOperations
from rankboard.core.redis.health_monitor import HealthState, RedisHealthMonitor
from rankboard.core.redis.metrics import RedisMetrics
from rankboard.core.redis.resilience import (
    CircuitBreakerOpenError,
    CircuitState,
    RedisResilience,
)
from rankboard.core.redis.service import RedisService

__all__ = [
    "RedisService",
    "RedisResilience",
    "CircuitState",
    "CircuitBreakerOpenError",
    "RedisBatchOperations",
    "RedisMetrics",
    "RedisHealthMonitor",
    "HealthState",
]
