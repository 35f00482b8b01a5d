"""
Leaderboard Query Assembler

Builds the "full profile" read for one identity as two `ReadBatch` round
trips against the coordinator's backend:

1. score, global rank, group, global top-K
2. groups of the global top-K rows, plus group rank and group top-K when the
   identity is grouped, using the group resolved in phase 1

On Redis each phase is one pipeline. The group is resolved exactly once. A
write landing between the phases can produce read skew; no phase blocks a
writer.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from rankboard.core.logging.logger import get_logger
from rankboard.modules.leaderboard.coordinator import RankingCoordinator
from rankboard.modules.leaderboard.models import LeaderboardProfile, RankedEntry
from rankboard.modules.leaderboard.store import ReadBatch
from rankboard.modules.shared.validators import validate_identity

logger = get_logger(__name__)


class LeaderboardQueryAssembler:
    def __init__(self, coordinator: RankingCoordinator) -> None:
        self.coordinator = coordinator

    async def full_profile(self, identity: str) -> LeaderboardProfile:
        """
        Score, both ranks and both top-K snapshots for `identity`.

        Never fails because the identity is unranked: absent score -> 0,
        ranks -> -1, group -> "", empty scopes -> empty lists.

        Raises:
            InvalidInputError: On an empty identity
            BackendFailureError: If any read fails
        """
        identity = validate_identity(identity)
        coordinator = self.coordinator
        settings = coordinator.settings

        score, global_rank, group, global_rows = await coordinator.backend.read(
            ReadBatch("full_profile")
            .score(settings.global_key, identity)
            .rank(settings.global_key, identity)
            .group(settings.directory_key, identity)
            .top_k(settings.global_key, settings.top_k)
        )
        group = group or ""

        second = ReadBatch("full_profile_groups").groups(
            settings.directory_key, [member for member, _ in global_rows]
        )
        if group:
            group_key = settings.group_key(group)
            second.rank(group_key, identity).top_k(group_key, settings.top_k)
        replies = await coordinator.backend.read(second)

        profile = LeaderboardProfile(
            identity=identity,
            score=_score_or_zero(score),
            global_rank=_rank_or_unranked(global_rank),
            group=group,
            top_k_global=_entries(global_rows, [tag or "" for tag in replies[0]]),
        )
        if group:
            group_rank, group_rows = replies[1], replies[2]
            profile.group_rank = _rank_or_unranked(group_rank)
            profile.top_k_group = _entries(group_rows, [group] * len(group_rows))

        logger.debug(
            "Full profile assembled",
            extra={
                "identity": identity,
                "group": group,
                "global_rank": profile.global_rank,
                "group_rank": profile.group_rank,
            },
        )
        return profile


def _entries(rows: List[Tuple[str, float]], groups: List[str]) -> List[RankedEntry]:
    return [
        RankedEntry(identity=member, group=tag, score=score)
        for (member, score), tag in zip(rows, groups)
    ]


def _score_or_zero(score: Optional[float]) -> float:
    return 0.0 if score is None else score


def _rank_or_unranked(rank: Optional[int]) -> int:
    return -1 if rank is None else rank


__all__ = ["LeaderboardQueryAssembler"]
