"""
Redis Resilience Module for Rankboard

Purpose
-------
Circuit breaker plus retry policy around every Redis call. Once Redis is
known to be failing, callers are rejected immediately with
`CircuitBreakerOpenError` instead of each waiting out a socket timeout.

Non-Responsibilities
--------------------
- No Redis commands of its own
- No metrics storage (RedisService records latency around `execute`)

Configuration Keys
------------------
- core.redis.resilience.circuit.failure_threshold    : int (default 5)
- core.redis.resilience.circuit.success_threshold    : int (default 2)
- core.redis.resilience.circuit.timeout_seconds      : int (default 30)
- core.redis.resilience.retry.max_attempts          : int (default 1)
- core.redis.resilience.retry.initial_delay_seconds : float (default 0.1)
- core.redis.resilience.retry.max_delay_seconds     : float (default 2.0)
- core.redis.resilience.retry.backoff_multiplier    : float (default 2.0)
- core.redis.resilience.retry.jitter                : bool (default True)

Notes
-----
The ranking backend always runs with `max_attempts=1`. A MULTI/EXEC that
carries ZINCRBY must not be replayed, so a failure goes straight back to the
caller as `BackendFailureError`.
"""

from __future__ import annotations

import asyncio
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from rankboard.core.config import ConfigManager
from rankboard.core.logging.logger import get_logger

logger = get_logger(__name__)

_CIRCUIT = "core.redis.resilience.circuit"
_RETRY = "core.redis.resilience.retry"


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"  # rejecting calls until the timeout elapses
    HALF_OPEN = "HALF_OPEN"  # letting trial calls through


class CircuitBreakerOpenError(Exception):
    """The circuit is OPEN; the operation was rejected without touching Redis."""


class RedisResilience:
    """
    Circuit breaker and retry policy for Redis operations.

    Circuit state is only mutated under an `asyncio.Lock`.

    Example
    -------
    >>> resilience = RedisResilience()
    >>> score = await resilience.execute(
    ...     lambda: client.zscore("default:global", "alice"),
    ...     "ZSCORE",
    ...     max_attempts=1,
    ... )
    """

    RETRYABLE_EXCEPTIONS = (RedisConnectionError, RedisTimeoutError, OSError)

    def __init__(self) -> None:
        self._circuit_state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._last_failure_time: Optional[float] = None
        self._lock = asyncio.Lock()

        self._circuit_failure_threshold = ConfigManager.get_int(f"{_CIRCUIT}.failure_threshold", 5)
        self._circuit_success_threshold = ConfigManager.get_int(f"{_CIRCUIT}.success_threshold", 2)
        self._circuit_timeout_seconds = ConfigManager.get_int(f"{_CIRCUIT}.timeout_seconds", 30)

        self._retry_max_attempts = ConfigManager.get_int(f"{_RETRY}.max_attempts", 1)
        self._retry_initial_delay = ConfigManager.get_float(f"{_RETRY}.initial_delay_seconds", 0.1)
        self._retry_max_delay = ConfigManager.get_float(f"{_RETRY}.max_delay_seconds", 2.0)
        self._retry_backoff_multiplier = ConfigManager.get_float(f"{_RETRY}.backoff_multiplier", 2.0)
        self._retry_jitter = ConfigManager.get_bool(f"{_RETRY}.jitter", True)

        logger.info(
            "RedisResilience initialized",
            extra={
                "circuit_failure_threshold": self._circuit_failure_threshold,
                "circuit_timeout_seconds": self._circuit_timeout_seconds,
                "retry_max_attempts": self._retry_max_attempts,
            },
        )

    # ═════════════════════════════════════════════════════════════════════════
    # EXECUTION
    # ═════════════════════════════════════════════════════════════════════════

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> Any:
        """
        Run `operation` under the circuit breaker, retrying transient errors.

        Parameters
        ----------
        operation : Callable
            Zero-argument factory; called once per attempt
        operation_name : str
            Name used in logs
        max_attempts : Optional[int]
            Overrides `retry.max_attempts`

        Raises
        ------
        CircuitBreakerOpenError
            If the circuit is OPEN
        Exception
            The last error once attempts run out; non-transient errors at once
        """
        if not await self._can_execute():
            raise CircuitBreakerOpenError(
                f"Redis circuit breaker is OPEN, operation '{operation_name}' rejected"
            )

        attempts = max(1, self._retry_max_attempts if max_attempts is None else max_attempts)
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await operation()
            except self.RETRYABLE_EXCEPTIONS as exc:
                await self._record_failure()
                if attempt >= attempts:
                    self._log_failure(operation_name, attempt, exc)
                    raise
                delay = self._calculate_delay(attempt)
                logger.warning(
                    "Redis operation failed, retrying",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "total_attempts": attempts,
                        "error_type": type(exc).__name__,
                        "retry_delay_seconds": round(delay, 3),
                    },
                )
                await asyncio.sleep(delay)
            except Exception as exc:
                await self._record_failure()
                self._log_failure(operation_name, attempt, exc)
                raise
            else:
                await self._record_success()
                return result

    def _log_failure(self, operation_name: str, attempt: int, exc: Exception) -> None:
        logger.error(
            "Redis operation failed",
            extra={
                "operation": operation_name,
                "attempts": attempt,
                "circuit_state": self._circuit_state.value,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff capped at `max_delay_seconds`, +/-10% jitter."""
        delay = min(
            self._retry_initial_delay * self._retry_backoff_multiplier ** (attempt - 1),
            self._retry_max_delay,
        )
        if self._retry_jitter:
            delay += random.uniform(-0.1, 0.1) * delay
        return max(0.0, delay)

    # ═════════════════════════════════════════════════════════════════════════
    # CIRCUIT STATE
    # ═════════════════════════════════════════════════════════════════════════

    async def _can_execute(self) -> bool:
        async with self._lock:
            if self._circuit_state != CircuitState.OPEN:
                return True
            if self._opened_at is not None and (
                time.time() - self._opened_at < self._circuit_timeout_seconds
            ):
                return False
            self._transition(CircuitState.HALF_OPEN)
            return True

    async def _record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            self._success_count += 1
            if (
                self._circuit_state == CircuitState.HALF_OPEN
                and self._success_count >= self._circuit_success_threshold
            ):
                self._transition(CircuitState.CLOSED)

    async def _record_failure(self) -> None:
        async with self._lock:
            self._success_count = 0
            self._failure_count += 1
            self._last_failure_time = time.time()
            if self._circuit_state == CircuitState.HALF_OPEN or (
                self._circuit_state == CircuitState.CLOSED
                and self._failure_count >= self._circuit_failure_threshold
            ):
                self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._circuit_state
        failures = self._failure_count
        self._circuit_state = new_state
        self._success_count = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = time.time()
        else:
            self._failure_count = 0
            if new_state == CircuitState.CLOSED:
                self._opened_at = None

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit breaker transitioned to {new_state.value}",
            extra={"previous_state": previous.value, "failure_count": failures},
        )

    # ═════════════════════════════════════════════════════════════════════════
    # MANUAL CONTROL & STATUS
    # ═════════════════════════════════════════════════════════════════════════

    async def reset(self) -> None:
        """Close the circuit by hand once Redis is known to be back."""
        async with self._lock:
            self._transition(CircuitState.CLOSED)
            self._last_failure_time = None

    async def force_open(self) -> None:
        async with self._lock:
            self._transition(CircuitState.OPEN)

    @property
    def state(self) -> CircuitState:
        return self._circuit_state

    @property
    def is_closed(self) -> bool:
        return self._circuit_state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._circuit_state == CircuitState.OPEN

    def get_status(self) -> Dict[str, Any]:
        reopen_in = None
        if self._circuit_state == CircuitState.OPEN and self._opened_at is not None:
            reopen_in = max(
                0.0, self._circuit_timeout_seconds - (time.time() - self._opened_at)
            )
        return {
            "circuit_state": self._circuit_state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "opened_at": self._opened_at,
            "last_failure_time": self._last_failure_time,
            "time_until_half_open": reopen_in,
            "circuit_failure_threshold": self._circuit_failure_threshold,
            "retry_max_attempts": self._retry_max_attempts,
        }


__all__ = ["CircuitState", "CircuitBreakerOpenError", "RedisResilience"]
