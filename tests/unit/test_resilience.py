"""
Unit Tests for RedisResilience
==============================

Test Coverage
-------------
- Circuit breaker transitions (CLOSED -> OPEN -> HALF_OPEN -> CLOSED)
- Fail-fast rejection while OPEN
- Single-attempt default and opt-in retry
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from rankboard.core.redis.resilience import (
    CircuitBreakerOpenError,
    CircuitState,
    RedisResilience,
)


@pytest.fixture
def resilience() -> RedisResilience:
    breaker = RedisResilience()
    breaker._circuit_failure_threshold = 2
    breaker._circuit_success_threshold = 2
    breaker._circuit_timeout_seconds = 60
    return breaker


@pytest.fixture
def no_sleep(mocker):
    return mocker.patch("rankboard.core.redis.resilience.asyncio.sleep", new=mocker.AsyncMock())


@pytest.mark.unit
class TestCircuitBreaker:
    async def test_success_keeps_circuit_closed(self, resilience, mocker):
        operation = mocker.AsyncMock(return_value=42)

        result = await resilience.execute(operation, "ZSCORE")

        assert result == 42
        assert resilience.is_closed

    async def test_failures_open_the_circuit(self, resilience, mocker):
        operation = mocker.AsyncMock(side_effect=RedisConnectionError("down"))

        for _ in range(2):
            with pytest.raises(RedisConnectionError):
                await resilience.execute(operation, "ZADD", max_attempts=1)

        assert resilience.is_open

    async def test_open_circuit_rejects_without_calling(self, resilience, mocker):
        await resilience.force_open()
        operation = mocker.AsyncMock(return_value="never")

        with pytest.raises(CircuitBreakerOpenError):
            await resilience.execute(operation, "ZADD")

        operation.assert_not_called()

    async def test_half_open_recovers_after_successes(self, resilience, mocker):
        await resilience.force_open()
        resilience._circuit_timeout_seconds = 0
        operation = mocker.AsyncMock(return_value="PONG")

        await resilience.execute(operation, "PING")
        assert resilience.state == CircuitState.HALF_OPEN

        await resilience.execute(operation, "PING")
        assert resilience.state == CircuitState.CLOSED

    async def test_half_open_failure_reopens(self, resilience, mocker):
        await resilience.force_open()
        resilience._circuit_timeout_seconds = 0
        operation = mocker.AsyncMock(side_effect=RedisConnectionError("still down"))

        with pytest.raises(RedisConnectionError):
            await resilience.execute(operation, "PING", max_attempts=1)

        assert resilience.is_open

    async def test_reset_closes_circuit(self, resilience):
        await resilience.force_open()

        await resilience.reset()

        assert resilience.is_closed
        assert resilience.get_status()["failure_count"] == 0


@pytest.mark.unit
class TestRetryPolicy:
    async def test_single_attempt_does_not_retry(self, resilience, mocker, no_sleep):
        operation = mocker.AsyncMock(side_effect=RedisConnectionError("down"))

        with pytest.raises(RedisConnectionError):
            await resilience.execute(operation, "EXEC", max_attempts=1)

        assert operation.await_count == 1
        no_sleep.assert_not_awaited()

    async def test_retryable_error_retried_when_allowed(self, resilience, mocker, no_sleep):
        operation = mocker.AsyncMock(side_effect=[RedisConnectionError("blip"), "ok"])

        result = await resilience.execute(operation, "ZREVRANGE", max_attempts=3)

        assert result == "ok"
        assert operation.await_count == 2
        no_sleep.assert_awaited_once()

    async def test_non_retryable_error_raised_immediately(self, resilience, mocker, no_sleep):
        operation = mocker.AsyncMock(side_effect=ValueError("bad reply"))

        with pytest.raises(ValueError):
            await resilience.execute(operation, "ZADD", max_attempts=3)

        assert operation.await_count == 1

    def test_backoff_is_capped(self, resilience):
        resilience._retry_jitter = False

        delays = [resilience._calculate_delay(attempt) for attempt in range(1, 10)]

        assert delays[0] == pytest.approx(resilience._retry_initial_delay)
        assert max(delays) == pytest.approx(resilience._retry_max_delay)
