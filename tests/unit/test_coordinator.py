"""
Unit Tests for RankingCoordinator
=================================

Test Coverage
-------------
- AddIdentity / AdjustScore / RemoveIdentity / ChangeGroup semantics
- Global and per-group ranks, top-K snapshots
- Precision policy (integer truncation vs fractional scores)
- Input validation and error kinds
- Global/group/directory consistency after mutation sequences

Testing Strategy
----------------
- In-memory backend (no Redis)
- AAA pattern (Arrange, Act, Assert)
"""

import asyncio
import math
import random

import pytest

from rankboard.core.exceptions import BackendFailureError
from rankboard.modules.leaderboard import KEEP_GROUP, RankingCoordinator
from rankboard.modules.shared.exceptions import (
    EmptyScopeError,
    InvalidInputError,
    NotFoundError,
)
from tests.conftest import assert_consistent


# ============================================================================
# ADD IDENTITY
# ============================================================================


@pytest.mark.unit
class TestAddIdentity:
    async def test_add_ranks_globally_and_in_group(self, coordinator, backend, settings):
        # Arrange & Act
        await coordinator.add_identity("alice", "US", 100)
        await coordinator.add_identity("bob", "US", 50)
        await coordinator.add_identity("carol", "UK", 75)

        # Assert
        assert await coordinator.rank_global("alice") == 0
        assert await coordinator.rank_global("carol") == 1
        assert await coordinator.rank_global("bob") == 2
        assert await coordinator.rank_in_group("bob") == 1
        assert await coordinator.rank_in_group("carol") == 0
        assert await coordinator.group_of("carol") == "UK"
        assert_consistent(backend, settings)

    async def test_add_without_group_is_global_only(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "", 10)

        assert await coordinator.score_of("alice") == 10
        assert await coordinator.group_of("alice") == ""
        assert await coordinator.rank_in_group("alice") == -1
        assert backend.directory(settings.directory_key) == {}

    async def test_repeat_add_overwrites_score_and_moves_group(self, coordinator, backend, settings):
        # Arrange
        await coordinator.add_identity("alice", "US", 100)

        # Act
        await coordinator.add_identity("alice", "UK", 40)

        # Assert
        assert await coordinator.score_of("alice") == 40
        assert await coordinator.group_of("alice") == "UK"
        assert backend.members(settings.group_key("US")) == {}
        assert backend.members(settings.group_key("UK")) == {"alice": 40}
        assert_consistent(backend, settings)

    async def test_repeat_add_with_empty_group_clears_group(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "US", 100)
        await coordinator.add_identity("alice", "", 100)

        assert await coordinator.group_of("alice") == ""
        assert settings.group_key("US") not in backend.keys()
        assert_consistent(backend, settings)

    async def test_integer_precision_truncates(self, coordinator):
        await coordinator.add_identity("alice", "US", 10.9)

        assert await coordinator.score_of("alice") == 10

    async def test_float_precision_keeps_fraction(self, backend, float_settings):
        coordinator = RankingCoordinator(backend, float_settings)

        await coordinator.add_identity("alice", "US", 10.75)

        assert await coordinator.score_of("alice") == pytest.approx(10.75)

    @pytest.mark.parametrize(
        "identity, score",
        [
            ("", 10),
            ("alice", -1),
            ("alice", math.nan),
            ("alice", math.inf),
            ("alice", True),
            ("alice", "10"),
        ],
    )
    async def test_invalid_input_rejected(self, coordinator, backend, identity, score):
        with pytest.raises(InvalidInputError):
            await coordinator.add_identity(identity, "US", score)

        assert backend.keys() == []


# ============================================================================
# ADJUST SCORE
# ============================================================================


@pytest.mark.unit
class TestAdjustScore:
    async def test_delta_accumulates(self, coordinator):
        await coordinator.add_identity("x", "", 10)

        await coordinator.adjust_score("x", KEEP_GROUP, 5)
        await coordinator.adjust_score("x", KEEP_GROUP, -3)

        assert await coordinator.score_of("x") == 12

    async def test_missing_identity_starts_from_zero(self, coordinator):
        await coordinator.adjust_score("newcomer", KEEP_GROUP, 7)

        assert await coordinator.score_of("newcomer") == 7
        assert await coordinator.group_of("newcomer") == ""

    async def test_keep_group_mirrors_post_delta_score(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "US", 10)

        await coordinator.adjust_score("alice", KEEP_GROUP, 5)

        assert backend.members(settings.group_key("US")) == {"alice": 15}
        assert await coordinator.group_of("alice") == "US"
        assert_consistent(backend, settings)

    async def test_concurrent_deltas_keep_scopes_equal(self, coordinator, backend, settings):
        await coordinator.add_identity("x", "US", 0)

        await asyncio.gather(*(coordinator.adjust_score("x", KEEP_GROUP, 1) for _ in range(200)))

        assert await coordinator.score_of("x") == 200
        assert backend.members(settings.group_key("US"))["x"] == 200
        assert_consistent(backend, settings)

    async def test_explicit_group_moves_identity(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "US", 10)

        await coordinator.adjust_score("alice", "UK", 5)

        assert await coordinator.group_of("alice") == "UK"
        assert backend.members(settings.group_key("UK")) == {"alice": 15}
        assert backend.members(settings.group_key("US")) == {}
        assert_consistent(backend, settings)

    async def test_explicit_empty_group_clears_group(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "US", 10)

        await coordinator.adjust_score("alice", "", 1)

        assert await coordinator.group_of("alice") == ""
        assert await coordinator.score_of("alice") == 11
        assert backend.members(settings.group_key("US")) == {}
        assert_consistent(backend, settings)

    async def test_decrement_below_zero_is_allowed(self, coordinator):
        await coordinator.add_identity("alice", "US", 3)

        await coordinator.adjust_score("alice", KEEP_GROUP, -5)

        assert await coordinator.score_of("alice") == -2

    async def test_zero_delta_rejected(self, coordinator):
        with pytest.raises(InvalidInputError) as exc_info:
            await coordinator.adjust_score("alice", KEEP_GROUP, 0)

        assert exc_info.value.field == "delta"

    async def test_delta_truncated_to_zero_rejected(self, coordinator):
        with pytest.raises(InvalidInputError):
            await coordinator.adjust_score("alice", KEEP_GROUP, 0.4)

    async def test_fractional_delta_with_float_scores(self, backend, float_settings):
        coordinator = RankingCoordinator(backend, float_settings)
        await coordinator.add_identity("alice", "US", 1)

        await coordinator.adjust_score("alice", KEEP_GROUP, 0.5)

        assert await coordinator.score_of("alice") == pytest.approx(1.5)

    async def test_keep_group_sentinel_is_singleton(self):
        from rankboard.modules.leaderboard.coordinator import _KeepGroup

        assert _KeepGroup() is KEEP_GROUP
        assert repr(KEEP_GROUP) == "KEEP_GROUP"


# ============================================================================
# REMOVE IDENTITY
# ============================================================================


@pytest.mark.unit
class TestRemoveIdentity:
    async def test_remove_clears_every_structure(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "US", 10)
        await coordinator.add_identity("bob", "US", 5)

        await coordinator.remove_identity("alice")

        assert await coordinator.rank_global("alice") == -1
        assert await coordinator.group_of("alice") == ""
        assert backend.members(settings.group_key("US")) == {"bob": 5}
        assert_consistent(backend, settings)

    async def test_remove_is_idempotent(self, coordinator, backend, settings):
        await coordinator.add_identity("alice", "US", 10)

        await coordinator.remove_identity("alice")
        await coordinator.remove_identity("alice")
        await coordinator.remove_identity("never-added")

        assert backend.keys() == []

    async def test_remove_empty_identity_rejected(self, coordinator):
        with pytest.raises(InvalidInputError):
            await coordinator.remove_identity("")


# ============================================================================
# CHANGE GROUP
# ============================================================================


@pytest.mark.unit
class TestChangeGroup:
    async def test_group_move_round_trip(self, coordinator, backend, settings):
        await coordinator.add_identity("x", "US", 100)

        await coordinator.change_group("x", "UK")

        assert await coordinator.group_of("x") == "UK"
        assert await coordinator.rank_in_group("x") == 0
        assert backend.members(settings.group_key("UK")) == {"x": 100}
        assert backend.members(settings.group_key("US")) == {}
        assert await coordinator.score_of("x") == 100
        assert_consistent(backend, settings)

    async def test_change_from_ungrouped(self, coordinator, backend, settings):
        await coordinator.add_identity("x", "", 20)

        await coordinator.change_group("x", "DE")

        assert backend.members(settings.group_key("DE")) == {"x": 20}
        assert_consistent(backend, settings)

    async def test_change_to_same_group_is_stable(self, coordinator, backend, settings):
        await coordinator.add_identity("x", "US", 100)

        await coordinator.change_group("x", "US")

        assert backend.members(settings.group_key("US")) == {"x": 100}
        assert_consistent(backend, settings)

    async def test_unknown_identity_not_found(self, coordinator, backend):
        with pytest.raises(NotFoundError):
            await coordinator.change_group("ghost", "US")

        assert backend.keys() == []

    async def test_empty_group_rejected(self, coordinator):
        await coordinator.add_identity("x", "US", 100)

        with pytest.raises(InvalidInputError):
            await coordinator.change_group("x", "")


# ============================================================================
# READS
# ============================================================================


@pytest.mark.unit
class TestReads:
    async def test_unranked_reads_degrade(self, coordinator):
        assert await coordinator.rank_global("ghost") == -1
        assert await coordinator.rank_in_group("ghost") == -1
        assert await coordinator.group_of("ghost") == ""
        assert await coordinator.group_of("") == ""

    async def test_score_of_unknown_raises(self, coordinator):
        with pytest.raises(NotFoundError):
            await coordinator.score_of("ghost")

    async def test_rank_reads_reject_empty_identity(self, coordinator):
        with pytest.raises(InvalidInputError):
            await coordinator.rank_global("")
        with pytest.raises(InvalidInputError):
            await coordinator.rank_in_group("")

    async def test_rank_zero_holds_max_score(self, coordinator):
        scores = {"a": 5, "b": 50, "c": 20, "d": 35}
        for identity, score in scores.items():
            await coordinator.add_identity(identity, "US", score)

        ranks = {identity: await coordinator.rank_global(identity) for identity in scores}

        assert ranks == {"b": 0, "d": 1, "c": 2, "a": 3}

    async def test_stats_reports_advisory_limits(self, coordinator, settings):
        await coordinator.add_identity("a", "US", 1)
        await coordinator.add_identity("b", "UK", 2)

        stats = await coordinator.stats()

        assert stats["identities"] == 2
        assert stats["namespace"] == settings.namespace
        assert stats["max_users"] == settings.max_users
        assert stats["over_user_limit"] is False


# ============================================================================
# TOP-K
# ============================================================================


@pytest.mark.unit
class TestTopK:
    async def test_top_k_global_is_bounded_and_ordered(self, coordinator, settings):
        for i, group in enumerate(["US", "UK", "US", "CA", "DE"]):
            await coordinator.add_identity(f"user{i}", group, (i + 1) * 10)

        entries = await coordinator.top_k_global()

        assert len(entries) == settings.top_k
        assert [e.identity for e in entries] == ["user4", "user3", "user2"]
        assert [e.group for e in entries] == ["DE", "CA", "US"]
        assert [e.score for e in entries] == [50, 40, 30]

    async def test_top_k_returns_whole_scope_when_small(self, coordinator):
        await coordinator.add_identity("a", "US", 1)
        await coordinator.add_identity("b", "", 2)

        entries = await coordinator.top_k_global()

        assert [(e.identity, e.group) for e in entries] == [("b", ""), ("a", "US")]

    async def test_top_k_in_group(self, coordinator):
        await coordinator.add_identity("a", "US", 1)
        await coordinator.add_identity("b", "US", 3)
        await coordinator.add_identity("c", "UK", 2)

        entries = await coordinator.top_k_in_group("US")

        assert [(e.identity, e.score) for e in entries] == [("b", 3), ("a", 1)]
        assert all(e.group == "US" for e in entries)

    async def test_empty_global_scope(self, coordinator):
        with pytest.raises(EmptyScopeError) as exc_info:
            await coordinator.top_k_global()

        assert exc_info.value.scope == "global"

    async def test_empty_group_scope(self, coordinator):
        await coordinator.add_identity("a", "US", 1)

        with pytest.raises(EmptyScopeError):
            await coordinator.top_k_in_group("UK")

    async def test_top_k_in_group_requires_group(self, coordinator):
        with pytest.raises(InvalidInputError):
            await coordinator.top_k_in_group("")


# ============================================================================
# FAILURES & CONSISTENCY
# ============================================================================


@pytest.mark.unit
class TestFailures:
    async def test_closed_backend_surfaces_backend_failure(self, coordinator):
        await coordinator.close()

        with pytest.raises(BackendFailureError):
            await coordinator.add_identity("a", "US", 1)

    async def test_submit_failure_is_logged_and_reraised(self, coordinator, backend, mocker):
        failure = BackendFailureError("add_identity", RuntimeError("boom"), "test")
        mocker.patch.object(backend, "submit", side_effect=failure)
        log_error = mocker.spy(coordinator, "log_error")

        with pytest.raises(BackendFailureError) as exc_info:
            await coordinator.add_identity("a", "US", 1)

        assert exc_info.value is failure
        log_error.assert_called_once()


@pytest.mark.unit
class TestConsistency:
    async def test_invariant_holds_after_random_sequence(self, coordinator, backend, settings):
        rng = random.Random(1234)
        identities = [f"user{i}" for i in range(8)]
        groups = ["", "US", "UK", "CA"]

        for _ in range(300):
            identity = rng.choice(identities)
            action = rng.randrange(4)
            if action == 0:
                await coordinator.add_identity(identity, rng.choice(groups), rng.randrange(0, 500))
            elif action == 1:
                group = KEEP_GROUP if rng.random() < 0.5 else rng.choice(groups)
                await coordinator.adjust_score(identity, group, rng.choice([-7, -1, 1, 3, 11]))
            elif action == 2:
                await coordinator.remove_identity(identity)
            else:
                try:
                    await coordinator.change_group(identity, rng.choice(groups[1:]))
                except NotFoundError:
                    pass

            assert_consistent(backend, settings)
