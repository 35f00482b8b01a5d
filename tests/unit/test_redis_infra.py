"""
Unit Tests for the Redis infrastructure layer (no Redis server)
===============================================================

Test Coverage
-------------
- RedisMetrics recording and summaries
- RedisHealthMonitor state machine
- RedisBatchOperations HMGET chunking
- RedisRankingBackend command mapping and error wrapping
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from rankboard.core.exceptions import BackendFailureError
from rankboard.core.redis.batch import RedisBatchOperations
from rankboard.core.redis.health_monitor import HealthState, RedisHealthMonitor
from rankboard.core.redis.metrics import RedisMetrics
from rankboard.core.redis.service import RedisService
from rankboard.modules.leaderboard.redis_backend import MIRROR_SCORE_SCRIPT, RedisRankingBackend
from rankboard.modules.leaderboard.store import AtomicBatch, ReadBatch


@pytest.fixture(autouse=True)
def clean_metrics():
    RedisMetrics.reset()
    yield
    RedisMetrics.reset()


# ============================================================================
# METRICS
# ============================================================================


@pytest.mark.unit
class TestRedisMetrics:
    def test_records_operations(self):
        RedisMetrics.record_operation("ZSCORE", 2.0, success=True)
        RedisMetrics.record_operation("ZSCORE", 4.0, success=False)

        snapshot = RedisMetrics.get_operation_metrics("ZSCORE")

        assert snapshot["total_count"] == 2
        assert snapshot["failure_count"] == 1
        assert snapshot["avg_latency_ms"] == 3.0
        assert snapshot["max_latency_ms"] == 4.0

    def test_unknown_operation_is_empty(self):
        assert RedisMetrics.get_operation_metrics("NOPE") == {}

    def test_summary_includes_health_checks(self):
        RedisMetrics.record_health_check(True, 1.0)
        RedisMetrics.record_health_check(False, 3.0)

        health = RedisMetrics.get_summary()["health"]

        assert health["total_checks"] == 2
        assert health["failed_checks"] == 1
        assert health["avg_latency_ms"] == 2.0


# ============================================================================
# HEALTH MONITOR
# ============================================================================


@pytest.fixture
def fake_service(mocker):
    service = mocker.MagicMock()
    service.health_check = mocker.AsyncMock(return_value=True)
    return service


@pytest.mark.unit
class TestHealthMonitor:
    async def test_failures_mark_unhealthy(self, fake_service):
        fake_service.health_check.side_effect = RedisConnectionError("down")
        monitor = RedisHealthMonitor(fake_service)

        await monitor.check_now()
        assert monitor.state == HealthState.DEGRADED

        await monitor.check_now()
        assert monitor.state == HealthState.UNHEALTHY
        assert monitor.get_status()["consecutive_failures"] == 2

    async def test_recovers_after_successes(self, fake_service):
        monitor = RedisHealthMonitor(fake_service)
        monitor._update_health_state(False, 0.0)
        monitor._update_health_state(False, 0.0)

        for _ in range(RedisHealthMonitor.RECOVERY_SUCCESSES):
            result = await monitor.check_now()
            assert result["passed"] is True

        assert monitor.is_healthy()

    def test_slow_check_degrades(self, fake_service):
        monitor = RedisHealthMonitor(fake_service)

        monitor._update_health_state(True, monitor._latency_critical + 1)

        assert monitor.state == HealthState.DEGRADED

    async def test_stop_without_start_is_noop(self, fake_service):
        monitor = RedisHealthMonitor(fake_service)

        await monitor.stop()

        assert monitor.get_status()["is_running"] is False


# ============================================================================
# BATCH OPERATIONS
# ============================================================================


@pytest.mark.unit
class TestBatchOperations:
    async def test_hmget_chunks_large_field_lists(self, mocker):
        client = mocker.MagicMock()
        client.hmget = mocker.AsyncMock(side_effect=[["US", None], ["UK"]])
        batch_ops = RedisBatchOperations(client)
        batch_ops._max_keys = 2

        values = await batch_ops.hmget("dir", ["a", "b", "c"])

        assert values == ["US", None, "UK"]
        assert client.hmget.await_count == 2

    async def test_hmget_empty_fields(self, mocker):
        client = mocker.MagicMock()
        client.hmget = mocker.AsyncMock()

        assert await RedisBatchOperations(client).hmget("dir", []) == []
        client.hmget.assert_not_called()


# ============================================================================
# REDIS RANKING BACKEND
# ============================================================================


@pytest.mark.unit
class TestRedisRankingBackend:
    def test_ops_map_to_redis_commands(self, mocker):
        pipe = mocker.MagicMock()
        batch = (
            AtomicBatch("demo")
            .upsert("g", "alice", 10)
            .delta("g", "alice", 5)
            .remove("grp:old", "alice")
            .mirror("g", "grp:new", "alice")
            .assign_group("dir", "alice", "US")
            .clear_group("dir", "bob")
        )

        for op in batch:
            RedisRankingBackend._queue(pipe, op)

        pipe.zadd.assert_called_once_with("g", {"alice": 10})
        pipe.zincrby.assert_called_once_with("g", 5, "alice")
        pipe.zrem.assert_called_once_with("grp:old", "alice")
        pipe.eval.assert_called_once_with(MIRROR_SCORE_SCRIPT, 2, "g", "grp:new", "alice")
        pipe.hset.assert_called_once_with("dir", "alice", "US")
        pipe.hdel.assert_called_once_with("dir", "bob")

    async def test_redis_errors_become_backend_failures(self, mocker):
        mocker.patch.object(
            RedisService, "execute", new=mocker.AsyncMock(side_effect=RedisConnectionError("down"))
        )
        backend = RedisRankingBackend(namespace="game1")

        with pytest.raises(BackendFailureError) as exc_info:
            await backend.rank_of("game1:global", "alice")

        assert exc_info.value.operation == "rank_of"
        assert exc_info.value.namespace == "game1"
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    async def test_empty_batch_skips_redis(self, mocker):
        execute = mocker.patch.object(RedisService, "execute", new=mocker.AsyncMock())

        await RedisRankingBackend().submit(AtomicBatch("noop"))

        execute.assert_not_called()

    async def test_read_replies_are_normalized(self, mocker):
        mocker.patch.object(
            RedisService, "execute", new=mocker.AsyncMock(side_effect=[3, "12", [("a", "5")]])
        )
        backend = RedisRankingBackend()

        assert await backend.rank_of("k", "a") == 3
        assert await backend.score_of("k", "a") == 12.0
        assert await backend.top_k("k", 1) == [("a", 5.0)]

    async def test_read_batch_runs_once_and_fills_skipped_reads(self, mocker):
        execute = mocker.patch.object(
            RedisService,
            "execute",
            new=mocker.AsyncMock(return_value=["7", None, [("a", "5")], "US", ["US", None]]),
        )
        batch = (
            ReadBatch("profile")
            .rank("g", "a")
            .score("g", "ghost")
            .top_k("g", 0)
            .top_k("g", 1)
            .group("dir", "a")
            .groups("dir", [])
            .groups("dir", ["a", "b"])
        )

        replies = await RedisRankingBackend().read(batch)

        assert replies == [7, None, [], [("a", 5.0)], "US", [], ["US", None]]
        execute.assert_awaited_once()
        assert execute.call_args.args[1] == "READ:profile"

    def test_read_ops_map_to_redis_commands(self, mocker):
        pipe = mocker.MagicMock()
        batch = ReadBatch("demo").rank("g", "a").top_k("g", 3).groups("dir", ["a", "b"])

        for op in batch:
            RedisRankingBackend._queue_read(pipe, op)

        pipe.zrevrank.assert_called_once_with("g", "a")
        pipe.zrevrange.assert_called_once_with("g", 0, 2, withscores=True)
        pipe.hmget.assert_called_once_with("dir", ["a", "b"])

    async def test_read_of_only_empty_reads_skips_redis(self, mocker):
        execute = mocker.patch.object(RedisService, "execute", new=mocker.AsyncMock())

        replies = await RedisRankingBackend().read(ReadBatch("noop").groups("dir", []))

        assert replies == [[]]
        execute.assert_not_called()

    async def test_close_only_shuts_down_owned_connection(self, mocker):
        shutdown = mocker.patch.object(RedisService, "shutdown", new=mocker.AsyncMock())

        await RedisRankingBackend().close()
        shutdown.assert_not_called()

        await RedisRankingBackend(owns_connection=True).close()
        shutdown.assert_awaited_once()
