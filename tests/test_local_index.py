"""Tests for LocalVectorIndex and its snapshot store."""

from __future__ import annotations

import pytest
from conftest import DIM, hash_vector

from seen.exceptions import SerializationError
from seen.search.stores.local import LocalVectorIndex
from seen.search.stores.snapshot import LocalIndexSnapshotStore, SnapshotVectorIndex
from seen.search.types import ScoreMetric, VectorEntry


@pytest.fixture
def index() -> LocalVectorIndex:
    return LocalVectorIndex(dimension=DIM)


def _fill(index: LocalVectorIndex, n: int, prefix: str = "doc") -> None:
    for i in range(n):
        index.insert(hash_vector(f"text {i}"), f"{prefix}-{i}")


# ==================================================================
# Insert / delete / len
# ==================================================================


class TestMutation:
    def test_insert_counts_live_entries(self, index: LocalVectorIndex):
        _fill(index, 5)
        assert len(index) == 5
        assert "doc-3" in index

    def test_reinsert_replaces(self, index: LocalVectorIndex):
        index.insert(hash_vector("one"), "doc-0")
        index.insert(hash_vector("two"), "doc-0")
        assert len(index) == 1
        assert index.get("doc-0") == pytest.approx(hash_vector("two"), abs=1e-6)

    def test_delete_by_id(self, index: LocalVectorIndex):
        _fill(index, 3)
        assert index.delete_by_id("doc-1") is True
        assert index.delete_by_id("doc-1") is False
        assert len(index) == 2
        assert "doc-1" not in index

    def test_ids_keep_insertion_order(self, index: LocalVectorIndex):
        for vid in ["c-0", "a-0", "b-0"]:
            index.insert(hash_vector(vid), vid)
        assert index.ids() == ["c-0", "a-0", "b-0"]

    def test_wrong_dimension_rejected(self, index: LocalVectorIndex):
        with pytest.raises(ValueError, match="dimensional"):
            index.insert([0.1, 0.2], "doc-0")


# ==================================================================
# Search
# ==================================================================


class TestSearch:
    def test_exact_match_first(self, index: LocalVectorIndex):
        _fill(index, 10)
        results = index.search(hash_vector("text 4"), 3)
        assert results[0].id == "doc-4"
        assert results[0].score == pytest.approx(1.0, abs=0.01)

    def test_scores_sorted(self, index: LocalVectorIndex):
        _fill(index, 10)
        scores = [m.score for m in index.search(hash_vector("text 0"), 10)]
        assert scores == sorted(scores, reverse=True)

    def test_k_larger_than_index(self, index: LocalVectorIndex):
        _fill(index, 2)
        assert len(index.search(hash_vector("text 0"), 20)) == 2

    def test_empty_index(self, index: LocalVectorIndex):
        assert index.search(hash_vector("anything"), 5) == []

    def test_deleted_entries_not_returned(self, index: LocalVectorIndex):
        _fill(index, 3)
        index.delete_by_id("doc-0")
        ids = [m.id for m in index.search(hash_vector("text 0"), 3)]
        assert "doc-0" not in ids

    def test_other_metric_rejected(self, index: LocalVectorIndex):
        _fill(index, 1)
        with pytest.raises(ValueError, match="cannot search"):
            index.search(hash_vector("text 0"), 1, ScoreMetric.L2)


# ==================================================================
# Serialization
# ==================================================================


class TestSerialization:
    def test_round_trip_preserves_entries_and_order(self, index: LocalVectorIndex):
        _fill(index, 6)
        index.delete_by_id("doc-2")
        restored = LocalVectorIndex.from_bytes(index.to_bytes())
        assert len(restored) == 5
        assert restored.ids() == index.ids()
        assert restored.search(hash_vector("text 5"), 1)[0].id == "doc-5"

    def test_restored_index_continues_key_sequence(self, index: LocalVectorIndex):
        _fill(index, 2)
        restored = LocalVectorIndex.from_bytes(index.to_bytes())
        restored.insert(hash_vector("new"), "new-0")
        assert restored.ids() == ["doc-0", "doc-1", "new-0"]

    def test_empty_round_trip(self, index: LocalVectorIndex):
        restored = LocalVectorIndex.from_bytes(index.to_bytes())
        assert len(restored) == 0
        assert restored.dimension == DIM

    def test_garbage_rejected(self):
        with pytest.raises(SerializationError):
            LocalVectorIndex.from_bytes(b"not a snapshot at all")


# ==================================================================
# Snapshot store
# ==================================================================


class TestSnapshotStore:
    @pytest.mark.asyncio
    async def test_missing_snapshot_loads_empty(self, snapshots: LocalIndexSnapshotStore):
        index = await snapshots.load()
        assert len(index) == 0

    @pytest.mark.asyncio
    async def test_save_then_load(self, snapshots: LocalIndexSnapshotStore):
        index = await snapshots.load()
        index.insert(hash_vector("x"), "d-0")
        await snapshots.save(index)
        reloaded = await snapshots.load()
        assert reloaded.ids() == ["d-0"]

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, blob_store, snapshots: LocalIndexSnapshotStore):
        other = LocalIndexSnapshotStore(blob_store, dimension=DIM * 2)
        await snapshots.save(await snapshots.load())
        with pytest.raises(SerializationError, match="dimension"):
            await other.load()


class TestSnapshotVectorIndex:
    @pytest.mark.asyncio
    async def test_mutations_persist_between_calls(self, snapshots: LocalIndexSnapshotStore):
        backend = SnapshotVectorIndex(snapshots)
        await backend.insert(
            [VectorEntry(id=f"d-{i}", vector=hash_vector(f"t{i}")) for i in range(3)]
        )
        matches = await backend.query(hash_vector("t1"), top_k=1)
        assert matches[0].id == "d-1"

        await backend.delete_by_ids(["d-1"])
        fetched = await backend.get_by_ids(["d-0", "d-1"])
        assert [e.id for e in fetched] == ["d-0"]
        assert len(await snapshots.load()) == 2
