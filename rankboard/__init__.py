"""
Rankboard: ranked leaderboards with global and per-group rankings.

Typical use::

    from rankboard.modules.leaderboard import RankingCoordinator, KEEP_GROUP

    coordinator = await RankingCoordinator.from_redis()
    await coordinator.add_identity("alice", "US", 100)
    await coordinator.adjust_score("alice", KEEP_GROUP, 5)
    await coordinator.close()
"""

__version__ = "0.1.0"
