"""
Redis Batch Operations for Rankboard

Purpose
-------
Pipeline helpers for the ranking backend: MULTI/EXEC transactions that carry
one mutation's structure updates, non-transactional read pipelines for
multi-key reads, and chunked HMGET for directory lookups on large top-K lists.

Responsibilities
----------------
- Build transactional and non-transactional pipelines
- Execute a pipeline from a builder callback and log its shape and latency
- Chunk oversized HMGET field lists

Non-Responsibilities
--------------------
- No resilience (callers run these through RedisService.execute)
- No ranking logic

Configuration Keys
------------------
- core.redis.batch.max_keys_per_operation : int (default 1000)
"""

from __future__ import annotations

import time
from typing import Any, Callable, List, Optional, Sequence

from redis.asyncio.client import Pipeline, Redis

from rankboard.core.config import ConfigManager
from rankboard.core.logging.logger import get_logger

logger = get_logger(__name__)

PipelineBuilder = Callable[[Pipeline], None]


class RedisBatchOperations:
    """
    Pipeline and bulk-read helpers bound to one Redis client.

    Example
    -------
    >>> def build(pipe):
    ...     pipe.zadd("default:global", {"alice": 100})
    ...     pipe.hset("default:user:entities", "alice", "US")
    >>> await batch_ops.execute_transaction(build, label="add_identity")
    """

    def __init__(self, client: Redis) -> None:
        self._client = client
        self._max_keys = ConfigManager.get_int("core.redis.batch.max_keys_per_operation", 1000)

    # ═══════════════════════════════════════════════════════════════════════
    # PIPELINES
    # ═══════════════════════════════════════════════════════════════════════

    def transaction(self) -> Pipeline:
        """Pipeline wrapped in MULTI/EXEC."""
        return self._client.pipeline(transaction=True)

    def read_pipeline(self) -> Pipeline:
        """Plain pipeline: one round trip, no atomicity."""
        return self._client.pipeline(transaction=False)

    async def execute_transaction(self, build: PipelineBuilder, label: str) -> List[Any]:
        """
        Queue commands with `build` and run them as one MULTI/EXEC.

        Parameters
        ----------
        build : Callable[[Pipeline], None]
            Queues commands on the pipeline; must not await
        label : str
            Name used in logs

        Returns
        -------
        List[Any]
            One reply per queued command

        Raises
        ------
        redis.exceptions.RedisError
            If the transaction is rejected or any command reply is an error
        """
        return await self._run(self.transaction(), build, label, transactional=True)

    async def execute_reads(self, build: PipelineBuilder, label: str) -> List[Any]:
        """Queue reads with `build` and run them in a single round trip."""
        return await self._run(self.read_pipeline(), build, label, transactional=False)

    async def _run(
        self,
        pipe: Pipeline,
        build: PipelineBuilder,
        label: str,
        transactional: bool,
    ) -> List[Any]:
        start_time = time.monotonic()
        async with pipe:
            build(pipe)
            command_count = len(pipe.command_stack)
            if command_count == 0:
                return []
            results = await pipe.execute()

        logger.debug(
            "Redis pipeline executed",
            extra={
                "label": label,
                "transactional": transactional,
                "command_count": command_count,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return list(results)

    # ═══════════════════════════════════════════════════════════════════════
    # BULK READS
    # ═══════════════════════════════════════════════════════════════════════

    async def hmget(self, key: str, fields: Sequence[str]) -> List[Optional[str]]:
        """
        HMGET with chunking; preserves the order of `fields`.

        Parameters
        ----------
        key : str
            Hash key
        fields : Sequence[str]
            Fields to read

        Returns
        -------
        List[Optional[str]]
            One value per field, None where absent
        """
        if not fields:
            return []

        if len(fields) <= self._max_keys:
            return list(await self._client.hmget(key, list(fields)))

        logger.warning(
            "Batch HMGET exceeds max keys, chunking operation",
            extra={
                "total_fields": len(fields),
                "max_keys": self._max_keys,
                "chunks": (len(fields) + self._max_keys - 1) // self._max_keys,
            },
        )

        values: List[Optional[str]] = []
        for i in range(0, len(fields), self._max_keys):
            chunk = list(fields[i:i + self._max_keys])
            values.extend(await self._client.hmget(key, chunk))
        return values


__all__ = ["PipelineBuilder", "RedisBatchOperations"]
