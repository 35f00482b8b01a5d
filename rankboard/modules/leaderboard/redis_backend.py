"""
Redis ranking backend.

Key layout per namespace:
- `{ns}:global`          sorted set, every ranked identity
- `{ns}:user:entities`   hash, identity -> group tag
- `{ns}:entity:{tag}`    sorted set per group tag

Every `AtomicBatch` runs as one MULTI/EXEC. Score mirroring runs as a Lua
script inside the same transaction so the group score is copied from the
post-delta global score without a client round trip. A `ReadBatch` runs as
one plain (non-transactional) pipeline.

All calls go through `RedisService.execute` (circuit breaker, one attempt,
metrics). Redis, socket and open-circuit failures surface as
`BackendFailureError`.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError

from rankboard.core.exceptions import BackendFailureError
from rankboard.core.logging.logger import get_logger
from rankboard.core.redis.resilience import CircuitBreakerOpenError
from rankboard.core.redis.service import RedisService
from rankboard.modules.leaderboard.store import (
    AssignGroupOp,
    AtomicBatch,
    BatchOp,
    ClearGroupOp,
    DeltaOp,
    GroupRead,
    GroupsRead,
    MirrorOp,
    RankingBackend,
    RankRead,
    ReadBatch,
    ReadOp,
    RemoveOp,
    ScoreRead,
    TopKRead,
    UpsertOp,
)

logger = get_logger(__name__)

# KEYS[1] = source sorted set, KEYS[2] = target sorted set, ARGV[1] = member
MIRROR_SCORE_SCRIPT = """
local score = redis.call("ZSCORE", KEYS[1], ARGV[1])
if score then
    redis.call("ZADD", KEYS[2], score, ARGV[1])
    return 1
end
redis.call("ZREM", KEYS[2], ARGV[1])
return 0
"""

BACKEND_ERRORS = (RedisError, OSError, CircuitBreakerOpenError)


class RedisRankingBackend(RankingBackend):
    """
    `RankingBackend` on the shared `RedisService` client.

    Args:
        namespace: Namespace reported in `BackendFailureError` details
        owns_connection: Shut `RedisService` down on `close()`
    """

    def __init__(self, namespace: Optional[str] = None, owns_connection: bool = False) -> None:
        self.namespace = namespace
        self._owns_connection = owns_connection

    async def _call(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        label: str,
    ) -> Any:
        try:
            return await RedisService.execute(operation, operation_name)
        except BACKEND_ERRORS as exc:
            logger.error(
                "Ranking backend call failed",
                extra={
                    "label": label,
                    "redis_operation": operation_name,
                    "namespace": self.namespace,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise BackendFailureError(label, exc, self.namespace) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _queue(pipe: Pipeline, op: BatchOp) -> None:
        if isinstance(op, UpsertOp):
            pipe.zadd(op.key, {op.member: op.score})
        elif isinstance(op, DeltaOp):
            pipe.zincrby(op.key, op.amount, op.member)
        elif isinstance(op, RemoveOp):
            pipe.zrem(op.key, op.member)
        elif isinstance(op, MirrorOp):
            pipe.eval(MIRROR_SCORE_SCRIPT, 2, op.source_key, op.target_key, op.member)
        elif isinstance(op, AssignGroupOp):
            pipe.hset(op.key, op.member, op.group)
        elif isinstance(op, ClearGroupOp):
            pipe.hdel(op.key, op.member)
        else:
            raise TypeError(f"Unsupported batch operation: {op!r}")

    async def submit(self, batch: AtomicBatch) -> None:
        if not len(batch):
            return

        def build(pipe: Pipeline) -> None:
            for op in batch:
                self._queue(pipe, op)

        await self._call(
            lambda: RedisService.get_batch_operations().execute_transaction(build, batch.label),
            operation_name=f"TX:{batch.label}",
            label=batch.label,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def rank_of(self, key: str, member: str) -> Optional[int]:
        rank = await self._call(
            lambda: RedisService.client().zrevrank(key, member),
            operation_name="ZREVRANK",
            label="rank_of",
        )
        return None if rank is None else int(rank)

    async def score_of(self, key: str, member: str) -> Optional[float]:
        score = await self._call(
            lambda: RedisService.client().zscore(key, member),
            operation_name="ZSCORE",
            label="score_of",
        )
        return None if score is None else float(score)

    async def top_k(self, key: str, k: int) -> List[Tuple[str, float]]:
        if k <= 0:
            return []
        rows = await self._call(
            lambda: RedisService.client().zrevrange(key, 0, k - 1, withscores=True),
            operation_name="ZREVRANGE",
            label="top_k",
        )
        return [(member, float(score)) for member, score in rows]

    async def cardinality(self, key: str) -> int:
        count = await self._call(
            lambda: RedisService.client().zcard(key),
            operation_name="ZCARD",
            label="cardinality",
        )
        return int(count)

    async def group_of(self, key: str, member: str) -> Optional[str]:
        return await self._call(
            lambda: RedisService.client().hget(key, member),
            operation_name="HGET",
            label="group_of",
        )

    async def groups_of(self, key: str, members: Sequence[str]) -> List[Optional[str]]:
        if not members:
            return []
        return await self._call(
            lambda: RedisService.get_batch_operations().hmget(key, members),
            operation_name="HMGET",
            label="groups_of",
        )

    @staticmethod
    def _queue_read(pipe: Pipeline, op: ReadOp) -> None:
        if isinstance(op, RankRead):
            pipe.zrevrank(op.key, op.member)
        elif isinstance(op, ScoreRead):
            pipe.zscore(op.key, op.member)
        elif isinstance(op, TopKRead):
            pipe.zrevrange(op.key, 0, op.k - 1, withscores=True)
        elif isinstance(op, GroupRead):
            pipe.hget(op.key, op.member)
        elif isinstance(op, GroupsRead):
            pipe.hmget(op.key, list(op.members))
        else:
            raise TypeError(f"Unsupported read operation: {op!r}")

    @staticmethod
    def _normalize_read(op: ReadOp, reply: Any) -> Any:
        if isinstance(op, RankRead):
            return None if reply is None else int(reply)
        if isinstance(op, ScoreRead):
            return None if reply is None else float(reply)
        if isinstance(op, TopKRead):
            return [(member, float(score)) for member, score in reply]
        if isinstance(op, GroupsRead):
            return list(reply)
        return reply

    @staticmethod
    def _reply_is_empty(op: ReadOp) -> bool:
        return (isinstance(op, TopKRead) and op.k <= 0) or (
            isinstance(op, GroupsRead) and not op.members
        )

    async def read(self, batch: ReadBatch) -> List[Any]:
        """Send every read in `batch` as one non-transactional pipeline."""
        ops = list(batch)
        # Reads with a known empty reply never reach Redis.
        sent = [op for op in ops if not self._reply_is_empty(op)]
        if not sent:
            return [[] for _ in ops]

        def build(pipe: Pipeline) -> None:
            for op in sent:
                self._queue_read(pipe, op)

        raw = await self._call(
            lambda: RedisService.get_batch_operations().execute_reads(build, batch.label),
            operation_name=f"READ:{batch.label}",
            label=batch.label,
        )
        replies = iter(raw)
        return [
            [] if self._reply_is_empty(op) else self._normalize_read(op, next(replies))
            for op in ops
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        if self._owns_connection:
            await RedisService.shutdown()
