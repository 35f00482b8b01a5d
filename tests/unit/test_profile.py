"""
Unit Tests for LeaderboardQueryAssembler
========================================

Test Coverage
-------------
- Full profile for grouped, ungrouped and unknown identities
- Empty scopes degrade to empty snapshots
- Two read batches per profile
- Backend failure propagation
"""

import pytest

from rankboard.core.exceptions import BackendFailureError
from rankboard.modules.shared.exceptions import InvalidInputError


@pytest.mark.unit
class TestFullProfile:
    async def test_unranked_identity_degrades(self, assembler):
        profile = await assembler.full_profile("ghost")

        assert (profile.score, profile.global_rank, profile.group, profile.group_rank) == (
            0,
            -1,
            "",
            -1,
        )
        assert profile.top_k_global == []
        assert profile.top_k_group == []

    async def test_grouped_identity(self, coordinator, assembler):
        await coordinator.add_identity("alice", "US", 100)
        await coordinator.add_identity("bob", "US", 150)
        await coordinator.add_identity("carol", "UK", 120)

        profile = await assembler.full_profile("alice")

        assert profile.score == 100
        assert profile.global_rank == 2
        assert profile.group == "US"
        assert profile.group_rank == 1
        assert [e.identity for e in profile.top_k_global] == ["bob", "carol", "alice"]
        assert [e.identity for e in profile.top_k_group] == ["bob", "alice"]

    async def test_ungrouped_identity_skips_group_reads(self, coordinator, assembler, mocker):
        await coordinator.add_identity("alice", "", 5)
        read = mocker.spy(coordinator.backend, "read")

        profile = await assembler.full_profile("alice")

        assert profile.global_rank == 0
        assert profile.group == ""
        assert profile.group_rank == -1
        assert profile.top_k_group == []
        assert read.call_count == 2
        assert len(read.call_args_list[1].args[0]) == 1

    async def test_grouped_identity_takes_two_reads(self, coordinator, assembler, mocker):
        await coordinator.add_identity("alice", "US", 100)
        await coordinator.add_identity("carol", "UK", 120)
        read = mocker.spy(coordinator.backend, "read")

        profile = await assembler.full_profile("alice")

        assert read.call_count == 2
        assert [batch.args[0].label for batch in read.call_args_list] == [
            "full_profile",
            "full_profile_groups",
        ]
        assert [(e.identity, e.group) for e in profile.top_k_global] == [
            ("carol", "UK"),
            ("alice", "US"),
        ]

    async def test_unknown_identity_still_sees_global_top_k(self, coordinator, assembler):
        await coordinator.add_identity("alice", "US", 5)

        profile = await assembler.full_profile("ghost")

        assert profile.score == 0
        assert [e.identity for e in profile.top_k_global] == ["alice"]

    async def test_to_dict_shape(self, coordinator, assembler):
        await coordinator.add_identity("alice", "US", 5)

        data = (await assembler.full_profile("alice")).to_dict()

        assert data["identity"] == "alice"
        assert data["group_rank"] == 0
        assert data["top_k_group"] == [{"identity": "alice", "group": "US", "score": 5}]

    async def test_empty_identity_rejected(self, assembler):
        with pytest.raises(InvalidInputError):
            await assembler.full_profile("")

    async def test_backend_failure_propagates(self, coordinator, assembler):
        await coordinator.close()

        with pytest.raises(BackendFailureError):
            await assembler.full_profile("alice")
