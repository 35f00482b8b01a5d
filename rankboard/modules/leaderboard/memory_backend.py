"""
In-process ranking backend.

Mirrors the Redis data model (sorted sets keyed by name, hashes for the
directory) so the coordinator behaves identically against either backend.
Used by the unit tests and for local experiments without Redis.

Ordering matches Redis: entries are kept ascending by (score, member) and
ranks are reported from the top, so equal scores order by member descending.
"""

from __future__ import annotations

from bisect import bisect_left, insort
from typing import Dict, List, Optional, Sequence, Tuple

from rankboard.core.exceptions import BackendFailureError
from rankboard.core.logging.logger import get_logger
from rankboard.modules.leaderboard.store import (
    AssignGroupOp,
    AtomicBatch,
    BatchOp,
    ClearGroupOp,
    DeltaOp,
    MirrorOp,
    RankingBackend,
    RemoveOp,
    UpsertOp,
)

logger = get_logger(__name__)


class SortedScores:
    """Ordered member -> score container."""

    def __init__(self) -> None:
        self._scores: Dict[str, float] = {}
        self._order: List[Tuple[float, str]] = []

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, member: str) -> bool:
        return member in self._scores

    def score(self, member: str) -> Optional[float]:
        return self._scores.get(member)

    def set(self, member: str, score: float) -> None:
        self.discard(member)
        self._scores[member] = score
        insort(self._order, (score, member))

    def discard(self, member: str) -> None:
        old = self._scores.pop(member, None)
        if old is None:
            return
        idx = bisect_left(self._order, (old, member))
        del self._order[idx]

    def rev_rank(self, member: str) -> Optional[int]:
        score = self._scores.get(member)
        if score is None:
            return None
        idx = bisect_left(self._order, (score, member))
        return len(self._order) - 1 - idx

    def rev_range(self, k: int) -> List[Tuple[str, float]]:
        if k <= 0:
            return []
        return [(member, score) for score, member in reversed(self._order[-k:])]


class InMemoryRankingBackend(RankingBackend):
    """
    Dictionary-backed `RankingBackend`.

    `submit` runs without awaiting, so a batch is never interleaved with
    another coroutine. An undo log restores every touched entry if an
    operation raises part-way through.
    """

    def __init__(self, namespace: Optional[str] = None) -> None:
        self.namespace = namespace
        self._sorted: Dict[str, SortedScores] = {}
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit(self, batch: AtomicBatch) -> None:
        self._ensure_open(batch.label)
        undo: List[Tuple[str, str, str, Optional[object]]] = []

        try:
            for op in batch:
                self._apply(op, undo)
        except Exception as exc:
            self._rollback(undo)
            logger.error(
                "In-memory batch rolled back",
                extra={"label": batch.label, "op_count": len(batch), "error": str(exc)},
            )
            raise BackendFailureError(batch.label, exc, self.namespace) from exc

    def _apply(self, op: BatchOp, undo: List[Tuple[str, str, str, Optional[object]]]) -> None:
        if isinstance(op, UpsertOp):
            self._zset(op.key, op.member, op.score, undo)
        elif isinstance(op, DeltaOp):
            current = self._zscore(op.key, op.member) or 0.0
            self._zset(op.key, op.member, current + op.amount, undo)
        elif isinstance(op, RemoveOp):
            self._zrem(op.key, op.member, undo)
        elif isinstance(op, MirrorOp):
            score = self._zscore(op.source_key, op.member)
            if score is None:
                self._zrem(op.target_key, op.member, undo)
            else:
                self._zset(op.target_key, op.member, score, undo)
        elif isinstance(op, AssignGroupOp):
            self._hset(op.key, op.member, op.group, undo)
        elif isinstance(op, ClearGroupOp):
            self._hset(op.key, op.member, None, undo)
        else:
            raise TypeError(f"Unsupported batch operation: {op!r}")

    def _zscore(self, key: str, member: str) -> Optional[float]:
        scores = self._sorted.get(key)
        return scores.score(member) if scores is not None else None

    def _zset(self, key: str, member: str, score: float, undo: list) -> None:
        undo.append(("z", key, member, self._zscore(key, member)))
        self._sorted.setdefault(key, SortedScores()).set(member, score)

    def _zrem(self, key: str, member: str, undo: list) -> None:
        scores = self._sorted.get(key)
        if scores is None or member not in scores:
            return
        undo.append(("z", key, member, scores.score(member)))
        scores.discard(member)
        if not scores:
            del self._sorted[key]

    def _hset(self, key: str, member: str, value: Optional[str], undo: list) -> None:
        fields = self._hashes.setdefault(key, {})
        undo.append(("h", key, member, fields.get(member)))
        if value is None:
            fields.pop(member, None)
        else:
            fields[member] = value
        if not fields:
            del self._hashes[key]

    def _rollback(self, undo: List[Tuple[str, str, str, Optional[object]]]) -> None:
        for kind, key, member, previous in reversed(undo):
            if kind == "z":
                scores = self._sorted.setdefault(key, SortedScores())
                if previous is None:
                    scores.discard(member)
                else:
                    scores.set(member, float(previous))  # type: ignore[arg-type]
                if not scores:
                    del self._sorted[key]
            else:
                fields = self._hashes.setdefault(key, {})
                if previous is None:
                    fields.pop(member, None)
                else:
                    fields[member] = str(previous)
                if not fields:
                    del self._hashes[key]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def rank_of(self, key: str, member: str) -> Optional[int]:
        self._ensure_open("rank_of")
        scores = self._sorted.get(key)
        return scores.rev_rank(member) if scores is not None else None

    async def score_of(self, key: str, member: str) -> Optional[float]:
        self._ensure_open("score_of")
        return self._zscore(key, member)

    async def top_k(self, key: str, k: int) -> List[Tuple[str, float]]:
        self._ensure_open("top_k")
        scores = self._sorted.get(key)
        return scores.rev_range(k) if scores is not None else []

    async def cardinality(self, key: str) -> int:
        self._ensure_open("cardinality")
        return len(self._sorted.get(key, ()))

    async def group_of(self, key: str, member: str) -> Optional[str]:
        self._ensure_open("group_of")
        return self._hashes.get(key, {}).get(member)

    async def groups_of(self, key: str, members: Sequence[str]) -> List[Optional[str]]:
        self._ensure_open("groups_of")
        fields = self._hashes.get(key, {})
        return [fields.get(member) for member in members]

    # ------------------------------------------------------------------
    # Lifecycle / inspection
    # ------------------------------------------------------------------

    async def close(self) -> None:
        self._closed = True

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise BackendFailureError(
                operation, RuntimeError("backend is closed"), self.namespace
            )

    def members(self, key: str) -> Dict[str, float]:
        """Snapshot of one sorted set, for assertions."""
        scores = self._sorted.get(key)
        if scores is None:
            return {}
        return {member: score for member, score in scores.rev_range(len(scores))}

    def directory(self, key: str) -> Dict[str, str]:
        return dict(self._hashes.get(key, {}))

    def keys(self) -> List[str]:
        return sorted([*self._sorted.keys(), *self._hashes.keys()])
