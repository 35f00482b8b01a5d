"""
Ranking store contracts.

Purpose
-------
Describe the backing store the coordinator runs against, independent of
whether it lives in Redis or in process memory:

- `AtomicBatch`: an ordered list of sub-operations submitted all-or-none
- `ReadBatch`: reads sent together, one round trip where the backend can
- `RankingBackend`: the injected interface over "ordered key-score store"
  and "key-value directory"
- `OrderedRankingStore`: one ranking scope (global or one group) bound to a
  backend key
- `GroupDirectory`: identity -> group tag, bound to the directory key

Key Design Decisions
--------------------
- Every sub-operation names its backend key explicitly, so a batch spanning
  the global store, two group stores and the directory is a single submit.
- `MirrorOp` copies the source score into the target scope at execution
  time. A delta followed by a mirror in one batch therefore leaves both
  scopes on the post-delta score without a read round trip. When the
  source holds no entry, the member is removed from the target.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

# ============================================================================
# Batch sub-operations
# ============================================================================


@dataclass(frozen=True, slots=True)
class UpsertOp:
    key: str
    member: str
    score: float


@dataclass(frozen=True, slots=True)
class DeltaOp:
    key: str
    member: str
    amount: float


@dataclass(frozen=True, slots=True)
class RemoveOp:
    key: str
    member: str


@dataclass(frozen=True, slots=True)
class MirrorOp:
    source_key: str
    target_key: str
    member: str


@dataclass(frozen=True, slots=True)
class AssignGroupOp:
    key: str
    member: str
    group: str


@dataclass(frozen=True, slots=True)
class ClearGroupOp:
    key: str
    member: str


BatchOp = Union[UpsertOp, DeltaOp, RemoveOp, MirrorOp, AssignGroupOp, ClearGroupOp]


class AtomicBatch:
    """
    Sub-operations that a backend must apply all-or-none, in order.

    Builder methods return the batch so calls can be chained:

    >>> batch = (
    ...     AtomicBatch("add_identity")
    ...     .upsert("default:global", "alice", 100)
    ...     .assign_group("default:user:entities", "alice", "US")
    ...     .upsert("default:entity:US", "alice", 100)
    ... )
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._ops: List[BatchOp] = []

    def upsert(self, key: str, member: str, score: float) -> "AtomicBatch":
        self._ops.append(UpsertOp(key, member, score))
        return self

    def delta(self, key: str, member: str, amount: float) -> "AtomicBatch":
        self._ops.append(DeltaOp(key, member, amount))
        return self

    def remove(self, key: str, member: str) -> "AtomicBatch":
        self._ops.append(RemoveOp(key, member))
        return self

    def mirror(self, source_key: str, target_key: str, member: str) -> "AtomicBatch":
        self._ops.append(MirrorOp(source_key, target_key, member))
        return self

    def assign_group(self, key: str, member: str, group: str) -> "AtomicBatch":
        """Map member -> group; the empty tag clears the entry."""
        if group:
            self._ops.append(AssignGroupOp(key, member, group))
        else:
            self._ops.append(ClearGroupOp(key, member))
        return self

    def clear_group(self, key: str, member: str) -> "AtomicBatch":
        self._ops.append(ClearGroupOp(key, member))
        return self

    @property
    def ops(self) -> Tuple[BatchOp, ...]:
        return tuple(self._ops)

    def __iter__(self) -> Iterator[BatchOp]:
        return iter(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __repr__(self) -> str:
        return f"AtomicBatch(label={self.label!r}, ops={self._ops!r})"


# ============================================================================
# Read batches
# ============================================================================


@dataclass(frozen=True, slots=True)
class RankRead:
    key: str
    member: str


@dataclass(frozen=True, slots=True)
class ScoreRead:
    key: str
    member: str


@dataclass(frozen=True, slots=True)
class TopKRead:
    key: str
    k: int


@dataclass(frozen=True, slots=True)
class GroupRead:
    key: str
    member: str


@dataclass(frozen=True, slots=True)
class GroupsRead:
    key: str
    members: Tuple[str, ...]


ReadOp = Union[RankRead, ScoreRead, TopKRead, GroupRead, GroupsRead]


class ReadBatch:
    """
    Reads a backend may send in one round trip; results come back in order.

    No isolation is implied: a write can land between two reads of the batch.
    Replies use the same shapes as the single-read methods (`None` when
    absent, `(member, score)` pairs for top-K).
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._ops: List[ReadOp] = []

    def rank(self, key: str, member: str) -> "ReadBatch":
        self._ops.append(RankRead(key, member))
        return self

    def score(self, key: str, member: str) -> "ReadBatch":
        self._ops.append(ScoreRead(key, member))
        return self

    def top_k(self, key: str, k: int) -> "ReadBatch":
        self._ops.append(TopKRead(key, k))
        return self

    def group(self, key: str, member: str) -> "ReadBatch":
        self._ops.append(GroupRead(key, member))
        return self

    def groups(self, key: str, members: Sequence[str]) -> "ReadBatch":
        self._ops.append(GroupsRead(key, tuple(members)))
        return self

    def __iter__(self) -> Iterator[ReadOp]:
        return iter(self._ops)

    def __len__(self) -> int:
        return len(self._ops)


# ============================================================================
# Backend contract
# ============================================================================


class RankingBackend(ABC):
    """
    Storage interface behind the ranking coordinator.

    Ordered stores rank by score descending; ranks are 0-based. Reads never
    observe a partially-applied batch. Implementations raise
    `BackendFailureError` for any storage failure.
    """

    @abstractmethod
    async def submit(self, batch: AtomicBatch) -> None:
        """Apply every operation in `batch`, or none of them."""

    @abstractmethod
    async def rank_of(self, key: str, member: str) -> Optional[int]:
        """Descending 0-based rank, or None when absent."""

    @abstractmethod
    async def score_of(self, key: str, member: str) -> Optional[float]:
        ...

    @abstractmethod
    async def top_k(self, key: str, k: int) -> List[Tuple[str, float]]:
        """Up to k (member, score) pairs, highest score first."""

    @abstractmethod
    async def cardinality(self, key: str) -> int:
        ...

    @abstractmethod
    async def group_of(self, key: str, member: str) -> Optional[str]:
        ...

    @abstractmethod
    async def groups_of(self, key: str, members: Sequence[str]) -> List[Optional[str]]:
        """Directory lookup for many members, in order."""

    async def read(self, batch: ReadBatch) -> List[Any]:
        """
        Run every read in `batch` and return one reply per read.

        Default: the single-read methods, one after another. Backends with
        pipelining override this to use a single round trip.
        """
        replies: List[Any] = []
        for op in batch:
            if isinstance(op, RankRead):
                replies.append(await self.rank_of(op.key, op.member))
            elif isinstance(op, ScoreRead):
                replies.append(await self.score_of(op.key, op.member))
            elif isinstance(op, TopKRead):
                replies.append(await self.top_k(op.key, op.k) if op.k > 0 else [])
            elif isinstance(op, GroupRead):
                replies.append(await self.group_of(op.key, op.member))
            elif isinstance(op, GroupsRead):
                replies.append(await self.groups_of(op.key, op.members))
            else:
                raise TypeError(f"Unsupported read operation: {op!r}")
        return replies

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""


# ============================================================================
# Scoped views
# ============================================================================


class OrderedRankingStore:
    """
    One ranking scope (global, or a single group) on a backend.

    Single-scope writes go out as one-operation batches; the coordinator
    builds multi-scope batches itself.
    """

    def __init__(self, backend: RankingBackend, key: str) -> None:
        self.backend = backend
        self.key = key

    async def upsert(self, identity: str, score: float) -> None:
        await self.backend.submit(AtomicBatch("upsert").upsert(self.key, identity, score))

    async def delta(self, identity: str, amount: float) -> None:
        await self.backend.submit(AtomicBatch("delta").delta(self.key, identity, amount))

    async def remove(self, identity: str) -> None:
        await self.backend.submit(AtomicBatch("remove").remove(self.key, identity))

    async def rank_of(self, identity: str) -> int:
        """0-based descending rank, -1 when absent."""
        rank = await self.backend.rank_of(self.key, identity)
        return -1 if rank is None else rank

    async def score_of(self, identity: str) -> Optional[float]:
        return await self.backend.score_of(self.key, identity)

    async def top_k(self, k: int) -> List[Tuple[str, float]]:
        if k <= 0:
            return []
        return await self.backend.top_k(self.key, k)

    async def size(self) -> int:
        return await self.backend.cardinality(self.key)


class GroupDirectory:
    """Identity -> group tag. A missing entry reads as "" (ungrouped)."""

    def __init__(self, backend: RankingBackend, key: str) -> None:
        self.backend = backend
        self.key = key

    async def group_of(self, identity: str) -> str:
        return await self.backend.group_of(self.key, identity) or ""

    async def groups_of(self, identities: Sequence[str]) -> List[str]:
        if not identities:
            return []
        groups = await self.backend.groups_of(self.key, identities)
        return [group or "" for group in groups]
