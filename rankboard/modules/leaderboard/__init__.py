"""
Leaderboard module: ranked leaderboards over a pluggable ranking backend.

- models.py: RankedEntry, LeaderboardProfile, LeaderboardSettings
- store.py: AtomicBatch, RankingBackend, OrderedRankingStore, GroupDirectory
- memory_backend.py / redis_backend.py: backend implementations
- coordinator.py: RankingCoordinator, KEEP_GROUP
- profile.py: LeaderboardQueryAssembler
"""

from rankboard.modules.leaderboard.coordinator import KEEP_GROUP, RankingCoordinator
from rankboard.modules.leaderboard.memory_backend import InMemoryRankingBackend
from rankboard.modules.leaderboard.models import (
    LeaderboardProfile,
    LeaderboardSettings,
    RankedEntry,
)
from rankboard.modules.leaderboard.profile import LeaderboardQueryAssembler
from rankboard.modules.leaderboard.redis_backend import RedisRankingBackend
from rankboard.modules.leaderboard.store import (
    AtomicBatch,
    GroupDirectory,
    OrderedRankingStore,
    RankingBackend,
)

__all__ = [
    "KEEP_GROUP",
    "RankingCoordinator",
    "LeaderboardQueryAssembler",
    "LeaderboardProfile",
    "LeaderboardSettings",
    "RankedEntry",
    "AtomicBatch",
    "RankingBackend",
    "OrderedRankingStore",
    "GroupDirectory",
    "InMemoryRankingBackend",
    "RedisRankingBackend",
]
