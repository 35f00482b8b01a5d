"""
Ranking Coordinator
===================

Purpose
-------
Owns the global ranking, the per-group rankings and the identity -> group
directory for one namespace, and is the only place that keeps the three
consistent.

Consistency
-----------
For every identity X with directory entry G (G non-empty), X is in the
global ranking with score S iff X is in group G's ranking with score S, and
X is in no other group ranking. Each mutation submits its structure updates
as one `AtomicBatch`, so the invariant holds again as soon as the batch
commits. Readers never observe a partial batch.

Mutations that depend on the current group read it first, then submit. A
concurrent group change between the read and the submit is not detected.

Errors
------
- InvalidInputError: empty identity, negative or non-finite score, zero
  delta, empty group on a group-required call
- NotFoundError: an existing identity was required
- EmptyScopeError: top-K query on an empty scope
- BackendFailureError: the store failed; never retried here
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from rankboard.core.exceptions import BackendFailureError
from rankboard.core.logging.logger import get_logger
from rankboard.modules.leaderboard.models import LeaderboardSettings, RankedEntry
from rankboard.modules.leaderboard.store import (
    AtomicBatch,
    GroupDirectory,
    OrderedRankingStore,
    RankingBackend,
)
from rankboard.modules.shared.base_service import BaseService
from rankboard.modules.shared.exceptions import (
    EmptyScopeError,
    InvalidInputError,
    NotFoundError,
)
from rankboard.modules.shared.validators import (
    validate_delta,
    validate_group_tag,
    validate_identity,
    validate_score,
)

if TYPE_CHECKING:
    from logging import Logger


class _KeepGroup:
    """Sentinel type for "leave the identity's group unchanged"."""

    _instance: Optional["_KeepGroup"] = None

    def __new__(cls) -> "_KeepGroup":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "KEEP_GROUP"

    def __reduce__(self) -> str:
        return "KEEP_GROUP"


KEEP_GROUP = _KeepGroup()

GroupArg = Union[str, _KeepGroup]


class RankingCoordinator(BaseService):
    """
    Global and per-group rankings over one `RankingBackend`.

    Public Methods
    --------------
    - add_identity() / adjust_score() / remove_identity() / change_group()
    - rank_global() / rank_in_group()
    - top_k_global() / top_k_in_group()
    - score_of() / group_of()
    - from_redis() / close()
    """

    def __init__(
        self,
        backend: RankingBackend,
        settings: Optional[LeaderboardSettings] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(logger or get_logger(__name__))
        self.backend = backend
        self.settings = settings or LeaderboardSettings.from_config()
        self.global_store = OrderedRankingStore(backend, self.settings.global_key)
        self.directory = GroupDirectory(backend, self.settings.directory_key)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @classmethod
    async def from_redis(
        cls,
        settings: Optional[LeaderboardSettings] = None,
        url: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "RankingCoordinator":
        """
        Connect `RedisService` (PING-verified) and build a coordinator on it.

        The coordinator owns the connection: `close()` shuts it down.

        Raises:
            RuntimeError: If Redis cannot be reached
        """
        from rankboard.core.redis.service import RedisService
        from rankboard.modules.leaderboard.redis_backend import RedisRankingBackend

        settings = settings or LeaderboardSettings.from_config()
        await RedisService.initialize(url=url, password=password)
        backend = RedisRankingBackend(namespace=settings.namespace, owns_connection=True)
        return cls(backend, settings)

    async def close(self) -> None:
        await self.backend.close()

    # ========================================================================
    # HELPERS
    # ========================================================================

    def group_store(self, group: str) -> OrderedRankingStore:
        return OrderedRankingStore(self.backend, self.settings.group_key(group))

    async def _submit(self, batch: AtomicBatch, **context: Any) -> None:
        try:
            await self.backend.submit(batch)
        except BackendFailureError as exc:
            self.log_error(batch.label, exc, namespace=self.settings.namespace, **context)
            raise

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    async def add_identity(self, identity: str, group: str, score: float) -> None:
        """
        Insert or overwrite an identity with an absolute score.

        A repeat call overwrites; if the identity sat in another group, that
        group entry is removed in the same batch. The previous group is read
        before the batch is submitted; a concurrent `change_group` landing in
        between can leave the identity ranked in that group as well.

        Args:
            identity: Non-empty identifier
            group: Group tag, "" for ungrouped
            score: Finite, non-negative score (precision policy applied)

        Raises:
            InvalidInputError: On empty identity or invalid score
            BackendFailureError: If the batch fails
        """
        identity = validate_identity(identity)
        group = validate_group_tag(group)
        score = self.settings.apply_precision(validate_score(score))

        current = await self.directory.group_of(identity)

        batch = (
            AtomicBatch("add_identity")
            .upsert(self.settings.global_key, identity, score)
            .assign_group(self.settings.directory_key, identity, group)
        )
        if group:
            batch.upsert(self.settings.group_key(group), identity, score)
        if current and current != group:
            batch.remove(self.settings.group_key(current), identity)

        await self._submit(batch, identity=identity, group=group)
        self.log_operation(
            "add_identity",
            identity=identity,
            group=group,
            score=score,
            previous_group=current,
            namespace=self.settings.namespace,
        )

    async def adjust_score(self, identity: str, group: GroupArg, delta: float) -> None:
        """
        Add `delta` (negative to decrement) to an identity's score.

        A missing identity counts as score 0.

        Args:
            identity: Non-empty identifier
            group: `KEEP_GROUP` to leave the group as is, otherwise the tag
                to assign ("" for ungrouped)
            delta: Non-zero after the precision policy

        Raises:
            InvalidInputError: On empty identity or zero/invalid delta
            BackendFailureError: If the batch fails
        """
        identity = validate_identity(identity)
        delta = self.settings.apply_precision(validate_delta(delta))
        if delta == 0:
            raise InvalidInputError("delta", "Delta must be non-zero")
        if group is not KEEP_GROUP:
            group = validate_group_tag(group)

        current = await self.directory.group_of(identity)
        target = current if group is KEEP_GROUP else group

        batch = AtomicBatch("adjust_score").delta(self.settings.global_key, identity, delta)
        if group is not KEEP_GROUP:
            batch.assign_group(self.settings.directory_key, identity, target)
            if current and current != target:
                batch.remove(self.settings.group_key(current), identity)
        if target:
            batch.mirror(self.settings.global_key, self.settings.group_key(target), identity)

        await self._submit(batch, identity=identity, group=target)
        self.log_operation(
            "adjust_score",
            identity=identity,
            group=target,
            delta=delta,
            keep_group=group is KEEP_GROUP,
            namespace=self.settings.namespace,
        )

    async def remove_identity(self, identity: str) -> None:
        """
        Remove an identity from every structure. Idempotent.

        Raises:
            InvalidInputError: On empty identity
            BackendFailureError: If the batch fails
        """
        identity = validate_identity(identity)
        current = await self.directory.group_of(identity)

        batch = (
            AtomicBatch("remove_identity")
            .remove(self.settings.global_key, identity)
            .clear_group(self.settings.directory_key, identity)
        )
        if current:
            batch.remove(self.settings.group_key(current), identity)

        await self._submit(batch, identity=identity, group=current)
        self.log_operation(
            "remove_identity",
            identity=identity,
            group=current,
            namespace=self.settings.namespace,
        )

    async def change_group(self, identity: str, new_group: str) -> None:
        """
        Move a ranked identity to `new_group`, keeping its score.

        Moving to the current group re-applies the same state.

        Raises:
            InvalidInputError: On empty identity or empty group
            NotFoundError: If the identity is not ranked
            BackendFailureError: If a read or the batch fails
        """
        identity = validate_identity(identity)
        new_group = validate_group_tag(new_group, required=True)

        if await self.global_store.score_of(identity) is None:
            raise NotFoundError("Identity", identity)
        current = await self.directory.group_of(identity)

        batch = (
            AtomicBatch("change_group")
            .assign_group(self.settings.directory_key, identity, new_group)
            .mirror(self.settings.global_key, self.settings.group_key(new_group), identity)
        )
        if current and current != new_group:
            batch.remove(self.settings.group_key(current), identity)

        await self._submit(batch, identity=identity, group=new_group)
        self.log_operation(
            "change_group",
            identity=identity,
            old_group=current,
            new_group=new_group,
            namespace=self.settings.namespace,
        )

    # ========================================================================
    # POINT READS
    # ========================================================================

    async def rank_global(self, identity: str) -> int:
        """0-based global rank, -1 when unranked."""
        return await self.global_store.rank_of(validate_identity(identity))

    async def rank_in_group(self, identity: str) -> int:
        """0-based rank within the identity's group, -1 when unranked or ungrouped."""
        identity = validate_identity(identity)
        group = await self.directory.group_of(identity)
        if not group:
            return -1
        return await self.group_store(group).rank_of(identity)

    async def score_of(self, identity: str) -> float:
        """
        Raises:
            NotFoundError: If the identity is not ranked
        """
        identity = validate_identity(identity)
        score = await self.global_store.score_of(identity)
        if score is None:
            raise NotFoundError("Identity", identity)
        return score

    async def group_of(self, identity: str) -> str:
        """Current group tag; "" when ungrouped or unknown."""
        if not identity:
            return ""
        return await self.directory.group_of(identity)

    # ========================================================================
    # TOP-K
    # ========================================================================

    async def top_k_global(self) -> List[RankedEntry]:
        """
        Up to K entries across all identities, each with its current group.

        Raises:
            EmptyScopeError: If no identity is ranked
        """
        rows = await self.global_store.top_k(self.settings.top_k)
        if not rows:
            raise EmptyScopeError("global")

        groups = await self.directory.groups_of([identity for identity, _ in rows])
        return [
            RankedEntry(identity=identity, group=group, score=score)
            for (identity, score), group in zip(rows, groups)
        ]

    async def top_k_in_group(self, group: str) -> List[RankedEntry]:
        """
        Up to K entries within `group`.

        Raises:
            InvalidInputError: On an empty group tag
            EmptyScopeError: If the group has no members
        """
        group = validate_group_tag(group, required=True)
        rows = await self.group_store(group).top_k(self.settings.top_k)
        if not rows:
            raise EmptyScopeError(group)
        return [RankedEntry(identity=identity, group=group, score=score) for identity, score in rows]

    # ========================================================================
    # STATS
    # ========================================================================

    async def stats(self) -> Dict[str, Any]:
        """Ranked-identity count against the advisory limits."""
        identities = await self.global_store.size()
        return {
            "namespace": self.settings.namespace,
            "identities": identities,
            "max_users": self.settings.max_users,
            "max_entities": self.settings.max_entities,
            "over_user_limit": identities > self.settings.max_users,
        }


__all__ = ["KEEP_GROUP", "RankingCoordinator"]
