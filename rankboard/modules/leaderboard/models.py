"""
Leaderboard value types and settings.

- RankedEntry: one (identity, group, score) row of a top-K snapshot
- LeaderboardProfile: the full-profile read for one identity
- LeaderboardSettings: namespace, K, precision policy and advisory limits,
  plus the Redis key layout derived from the namespace
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

from rankboard.core.config.config import Config

DEFAULT_NAMESPACE = "default"
DEFAULT_TOP_K = 10
DEFAULT_MAX_USERS = 1_000_000
DEFAULT_MAX_ENTITIES = 200


@dataclass(frozen=True, slots=True)
class RankedEntry:
    identity: str
    group: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"identity": self.identity, "group": self.group, "score": self.score}


@dataclass(slots=True)
class LeaderboardProfile:
    """
    Score, both ranks and both top-K snapshots for one identity.

    Unranked identities degrade to score 0, ranks -1, group "" and empty
    snapshots instead of failing.
    """

    identity: str
    score: float = 0.0
    global_rank: int = -1
    group: str = ""
    group_rank: int = -1
    top_k_global: List[RankedEntry] = field(default_factory=list)
    top_k_group: List[RankedEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "score": self.score,
            "global_rank": self.global_rank,
            "group": self.group,
            "group_rank": self.group_rank,
            "top_k_global": [entry.to_dict() for entry in self.top_k_global],
            "top_k_group": [entry.to_dict() for entry in self.top_k_group],
        }


@dataclass(frozen=True, slots=True)
class LeaderboardSettings:
    """
    Per-leaderboard settings.

    Invalid values fall back to defaults instead of raising: an empty
    namespace becomes "default", and non-positive K / limits take their
    default values. `max_users` and `max_entities` are advisory only.
    """

    namespace: str = DEFAULT_NAMESPACE
    top_k: int = DEFAULT_TOP_K
    float_scores: bool = False
    max_users: int = DEFAULT_MAX_USERS
    max_entities: int = DEFAULT_MAX_ENTITIES

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        if not self.namespace:
            object.__setattr__(self, "namespace", DEFAULT_NAMESPACE)
        if self.top_k <= 0:
            object.__setattr__(self, "top_k", DEFAULT_TOP_K)
        if self.max_users <= 0:
            object.__setattr__(self, "max_users", DEFAULT_MAX_USERS)
        if self.max_entities <= 0:
            object.__setattr__(self, "max_entities", DEFAULT_MAX_ENTITIES)

    @classmethod
    def from_config(cls) -> "LeaderboardSettings":
        return cls(
            namespace=Config.LEADERBOARD_NAMESPACE,
            top_k=Config.LEADERBOARD_TOP_K,
            float_scores=Config.LEADERBOARD_FLOAT_SCORES,
            max_users=Config.LEADERBOARD_MAX_USERS,
            max_entities=Config.LEADERBOARD_MAX_ENTITIES,
        )

    # ------------------------------------------------------------------
    # Key layout
    # ------------------------------------------------------------------

    @property
    def global_key(self) -> str:
        return f"{self.namespace}:global"

    @property
    def directory_key(self) -> str:
        return f"{self.namespace}:user:entities"

    def group_key(self, group: str) -> str:
        return f"{self.namespace}:entity:{group}"

    # ------------------------------------------------------------------
    # Precision policy
    # ------------------------------------------------------------------

    def apply_precision(self, value: float) -> float:
        """Truncate toward zero unless fractional scores are enabled."""
        if self.float_scores:
            return float(value)
        return float(math.trunc(value))
