"""
Unit Tests for InMemoryRankingBackend and the store views
=========================================================

Test Coverage
-------------
- Sorted-set ordering, including ties
- AtomicBatch application and rollback
- Mirror semantics
- ReadBatch replies in request order
- OrderedRankingStore / GroupDirectory defaults
"""

import pytest

from rankboard.core.exceptions import BackendFailureError
from rankboard.modules.leaderboard.memory_backend import InMemoryRankingBackend, SortedScores
from rankboard.modules.leaderboard.store import (
    AtomicBatch,
    ClearGroupOp,
    GroupDirectory,
    OrderedRankingStore,
    ReadBatch,
    UpsertOp,
)


@pytest.mark.unit
class TestSortedScores:
    def test_rank_and_range_descending(self):
        scores = SortedScores()
        scores.set("a", 1)
        scores.set("b", 3)
        scores.set("c", 2)

        assert scores.rev_rank("b") == 0
        assert scores.rev_rank("a") == 2
        assert scores.rev_range(2) == [("b", 3), ("c", 2)]

    def test_ties_order_by_member_descending(self):
        scores = SortedScores()
        scores.set("alice", 10)
        scores.set("bob", 10)

        assert scores.rev_range(2) == [("bob", 10), ("alice", 10)]
        assert scores.rev_rank("bob") == 0

    def test_set_replaces_existing_entry(self):
        scores = SortedScores()
        scores.set("a", 1)
        scores.set("a", 5)

        assert len(scores) == 1
        assert scores.score("a") == 5
        assert scores.rev_range(10) == [("a", 5)]

    def test_discard_missing_is_noop(self):
        scores = SortedScores()
        scores.discard("ghost")

        assert len(scores) == 0
        assert scores.rev_rank("ghost") is None


@pytest.mark.unit
class TestAtomicBatch:
    def test_builder_chains_and_records_order(self):
        batch = AtomicBatch("demo").upsert("k", "m", 1).assign_group("d", "m", "")

        assert len(batch) == 2
        assert batch.ops[0] == UpsertOp("k", "m", 1)
        assert batch.ops[1] == ClearGroupOp("d", "m")


@pytest.mark.unit
class TestInMemoryBackend:
    async def test_batch_applies_in_order(self, backend):
        batch = (
            AtomicBatch("demo")
            .upsert("g", "alice", 10)
            .delta("g", "alice", 5)
            .mirror("g", "grp", "alice")
            .assign_group("dir", "alice", "US")
        )

        await backend.submit(batch)

        assert backend.members("g") == {"alice": 15}
        assert backend.members("grp") == {"alice": 15}
        assert backend.directory("dir") == {"alice": "US"}

    async def test_mirror_of_absent_source_removes_target(self, backend):
        await backend.submit(AtomicBatch("seed").upsert("grp", "alice", 3))

        await backend.submit(AtomicBatch("mirror").mirror("g", "grp", "alice"))

        assert backend.members("grp") == {}
        assert backend.keys() == []

    async def test_failed_batch_rolls_back(self, backend):
        await backend.submit(
            AtomicBatch("seed").upsert("g", "alice", 10).assign_group("dir", "alice", "US")
        )
        batch = AtomicBatch("broken").upsert("g", "alice", 99).clear_group("dir", "alice")
        batch._ops.append(object())  # unsupported op forces a failure mid-batch

        with pytest.raises(BackendFailureError) as exc_info:
            await backend.submit(batch)

        assert exc_info.value.operation == "broken"
        assert backend.members("g") == {"alice": 10}
        assert backend.directory("dir") == {"alice": "US"}

    async def test_reads_on_missing_keys(self, backend):
        assert await backend.rank_of("g", "a") is None
        assert await backend.score_of("g", "a") is None
        assert await backend.top_k("g", 5) == []
        assert await backend.cardinality("g") == 0
        assert await backend.group_of("dir", "a") is None
        assert await backend.groups_of("dir", ["a", "b"]) == [None, None]

    async def test_closed_backend_rejects_calls(self, backend):
        await backend.close()

        with pytest.raises(BackendFailureError):
            await backend.score_of("g", "a")
        with pytest.raises(BackendFailureError):
            await backend.submit(AtomicBatch("x").upsert("g", "a", 1))

    async def test_read_batch_replies_in_order(self, backend):
        await backend.submit(
            AtomicBatch("seed")
            .upsert("g", "alice", 10)
            .upsert("g", "bob", 20)
            .assign_group("dir", "alice", "US")
        )

        replies = await backend.read(
            ReadBatch("profile")
            .score("g", "alice")
            .rank("g", "alice")
            .group("dir", "bob")
            .top_k("g", 0)
            .top_k("g", 5)
            .groups("dir", ["bob", "alice"])
        )

        assert replies == [10, 1, None, [], [("bob", 20), ("alice", 10)], [None, "US"]]


@pytest.mark.unit
class TestStoreViews:
    async def test_ordered_store_single_scope_writes(self):
        backend = InMemoryRankingBackend()
        store = OrderedRankingStore(backend, "scope")

        await store.upsert("a", 5)
        await store.delta("a", 2)
        await store.upsert("b", 1)

        assert await store.score_of("a") == 7
        assert await store.rank_of("a") == 0
        assert await store.rank_of("ghost") == -1
        assert await store.top_k(0) == []
        assert await store.size() == 2

        await store.remove("a")
        assert await store.size() == 1

    async def test_directory_defaults_to_ungrouped(self):
        backend = InMemoryRankingBackend()
        directory = GroupDirectory(backend, "dir")
        await backend.submit(AtomicBatch("seed").assign_group("dir", "a", "US"))

        assert await directory.group_of("a") == "US"
        assert await directory.group_of("b") == ""
        assert await directory.groups_of(["a", "b"]) == ["US", ""]
        assert await directory.groups_of([]) == []
