"""
Pytest Configuration and Fixtures for Rankboard Tests
=====================================================

Purpose
-------
Centralized test fixtures for the Rankboard test suite.

Responsibilities
----------------
- Test environment variables (set before any rankboard import)
- In-memory backend and coordinator fixtures for unit tests
- Redis testcontainer for integration tests
- Mock fixtures for configuration

Architecture Notes
------------------
- Unit tests run against `InMemoryRankingBackend` (fast, isolated)
- Integration tests run against a real Redis via testcontainers
- Fixtures follow scope hierarchy: session > function
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_JSON", "false")

from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from testcontainers.redis import RedisContainer  # noqa: E402

from rankboard.core.logging.logger import get_logger  # noqa: E402
from rankboard.modules.leaderboard import (  # noqa: E402
    InMemoryRankingBackend,
    LeaderboardQueryAssembler,
    LeaderboardSettings,
    RankingCoordinator,
)

logger = get_logger(__name__)

# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


# ============================================================================
# LEADERBOARD FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def settings() -> LeaderboardSettings:
    """Integer-precision settings with K=3 so top-K truncation is visible."""
    return LeaderboardSettings(namespace="test", top_k=3)


@pytest.fixture
def float_settings() -> LeaderboardSettings:
    return LeaderboardSettings(namespace="test", top_k=3, float_scores=True)


@pytest.fixture
def backend() -> InMemoryRankingBackend:
    return InMemoryRankingBackend(namespace="test")


@pytest.fixture
def coordinator(backend: InMemoryRankingBackend, settings: LeaderboardSettings) -> RankingCoordinator:
    return RankingCoordinator(backend, settings)


@pytest.fixture
def assembler(coordinator: RankingCoordinator) -> LeaderboardQueryAssembler:
    return LeaderboardQueryAssembler(coordinator)


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def assert_consistent(backend: InMemoryRankingBackend, settings: LeaderboardSettings) -> None:
    """
    Assert that global, group and directory state agree.

    Every directory entry (identity -> G) must be ranked in G with the
    global score, and every group member must sit in exactly that group.
    """
    global_scores = backend.members(settings.global_key)
    directory = backend.directory(settings.directory_key)
    group_prefix = f"{settings.namespace}:entity:"

    for identity, group in directory.items():
        assert identity in global_scores, f"{identity} has a group but no global score"
        group_scores = backend.members(settings.group_key(group))
        assert group_scores.get(identity) == global_scores[identity], (
            f"{identity} score differs between global and group {group}"
        )

    for key in backend.keys():
        if not key.startswith(group_prefix):
            continue
        group = key[len(group_prefix):]
        for identity in backend.members(key):
            assert directory.get(identity) == group, (
                f"{identity} is ranked in {group} but directory says {directory.get(identity)!r}"
            )
