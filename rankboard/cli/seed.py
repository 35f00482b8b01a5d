#!/usr/bin/env python3
"""
Rankboard Mock Data Seeder

Loads N identities with uniform random scores in [0, 1000) spread across a
list of group tags, through the regular AddIdentity path.

Usage:
    rankboard-seed --count 1000000 --groups US UK CA DE FR
    python -m rankboard.cli.seed --count 5000 --namespace demo --seed 42
"""

from __future__ import annotations

import argparse
import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from rankboard.core.config.config import Config
from rankboard.core.logging.logger import LogContext, get_logger, shutdown_logging
from rankboard.modules.leaderboard.coordinator import RankingCoordinator
from rankboard.modules.leaderboard.models import LeaderboardSettings

logger = get_logger(__name__)

DEFAULT_GROUPS = ["US", "UK", "CA", "DE", "FR"]
PROGRESS_EVERY = 100_000
MAX_SCORE = 1000.0


@dataclass
class SeedConfig:
    """Configuration for mock data seeding."""

    count: int = 1_000_000
    groups: List[str] = field(default_factory=lambda: list(DEFAULT_GROUPS))
    chunk_size: int = 500
    prefix: str = "user"
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self.chunk_size = max(1, self.chunk_size)


class MockDataSeeder:
    def __init__(self, coordinator: RankingCoordinator, config: SeedConfig) -> None:
        self.coordinator = coordinator
        self.config = config
        self._rng = random.Random(config.seed)

    def _identity(self, index: int) -> tuple[str, str, float]:
        return (
            f"{self.config.prefix}{index}",
            self._rng.choice(self.config.groups),
            self._rng.random() * MAX_SCORE,
        )

    async def run(self) -> int:
        """Seed every identity; returns the number added."""
        cfg = self.config
        if cfg.count <= 0:
            return 0
        if not cfg.groups:
            raise ValueError("At least one group tag is required")

        started = time.perf_counter()
        logger.info(
            "Seeding mock identities",
            extra={"count": cfg.count, "groups": cfg.groups, "chunk_size": cfg.chunk_size},
        )

        added = 0
        next_report = PROGRESS_EVERY
        for chunk_start in range(0, cfg.count, cfg.chunk_size):
            chunk_end = min(chunk_start + cfg.chunk_size, cfg.count)
            rows = [self._identity(i) for i in range(chunk_start, chunk_end)]
            await asyncio.gather(
                *(self.coordinator.add_identity(identity, group, score) for identity, group, score in rows)
            )
            added = chunk_end

            while added >= next_report:
                logger.info(f"Added {next_report} identities...", extra={"added": next_report})
                next_report += PROGRESS_EVERY

        elapsed = time.perf_counter() - started
        logger.info(
            f"Added {added} identities in {elapsed:.2f}s",
            extra={"added": added, "elapsed_seconds": round(elapsed, 2)},
        )
        return added


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rankboard-seed",
        description="Load mock identities into a Rankboard leaderboard",
    )
    parser.add_argument("--count", "-n", type=int, default=1_000_000, help="Identities to add (default: 1000000)")
    parser.add_argument(
        "--groups",
        "-g",
        nargs="+",
        default=list(DEFAULT_GROUPS),
        help="Group tags to assign at random (default: US UK CA DE FR)",
    )
    parser.add_argument("--chunk-size", "-c", type=int, default=500, help="Concurrent adds per chunk (default: 500)")
    parser.add_argument("--prefix", default="user", help="Identity prefix (default: user)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    parser.add_argument("--namespace", default=None, help="Leaderboard namespace (default: LEADERBOARD_NAMESPACE)")
    parser.add_argument("--redis-url", default=None, help="Redis URL (default: REDIS_URL)")
    return parser


async def seed(args: argparse.Namespace) -> int:
    settings = LeaderboardSettings(
        namespace=args.namespace or Config.LEADERBOARD_NAMESPACE,
        top_k=Config.LEADERBOARD_TOP_K,
        float_scores=Config.LEADERBOARD_FLOAT_SCORES,
        max_users=Config.LEADERBOARD_MAX_USERS,
        max_entities=Config.LEADERBOARD_MAX_ENTITIES,
    )
    config = SeedConfig(
        count=args.count,
        groups=args.groups,
        chunk_size=args.chunk_size,
        prefix=args.prefix,
        seed=args.seed,
    )

    coordinator = await RankingCoordinator.from_redis(settings, url=args.redis_url)
    try:
        async with LogContext(component="seed", namespace=settings.namespace):
            return await MockDataSeeder(coordinator, config).run()
    finally:
        await coordinator.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    try:
        asyncio.run(seed(args))
    finally:
        shutdown_logging()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
