"""Tests for VectorStore: per-dimension usearch tables."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from wikiembed.exceptions import VectorBackendUnavailable
from wikiembed.search.stores import vector as vector_module
from wikiembed.search.stores.vector import VectorStore, table_name
from wikiembed.search.types import VectorMatch

from tests.fakes import FAKE_DIM, hash_to_vector

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def store() -> VectorStore:
    return VectorStore()


@pytest.fixture
def no_backend(monkeypatch: pytest.MonkeyPatch) -> VectorStore:
    monkeypatch.setattr(vector_module, "_HAS_USEARCH", False)
    return VectorStore()


# ==================================================================
# Tables
# ==================================================================


class TestTables:
    def test_table_name(self):
        assert table_name(1536) == "embeddings_vec_1536"

    def test_ensure_table_is_idempotent(self, store: VectorStore):
        store.ensure_table(8)
        store.ensure_table(8)
        assert store.tables() == [8]
        assert store.count(8) == 0

    def test_tables_per_dimension(self, store: VectorStore):
        store.ensure_table(16)
        store.ensure_table(4)
        assert store.tables() == [4, 16]

    def test_ensure_table_rejects_non_positive(self, store: VectorStore):
        with pytest.raises(ValueError):
            store.ensure_table(0)

    @pytest.mark.asyncio
    async def test_drop_table(self, store: VectorStore):
        await store.upsert("r1", [1.0, 0.0], 2)
        store.drop_table(2)
        assert store.tables() == []
        assert store.count(2) == 0

    def test_count_unknown_table(self, store: VectorStore):
        assert store.count(99) == 0


# ==================================================================
# Rows
# ==================================================================


class TestRows:
    @pytest.mark.asyncio
    async def test_upsert_creates_table_lazily(self, store: VectorStore):
        await store.upsert("r1", hash_to_vector("a"), FAKE_DIM)
        assert store.tables() == [FAKE_DIM]
        assert store.count(FAKE_DIM) == 1
        assert store.has("r1", FAKE_DIM)

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_row(self, store: VectorStore):
        await store.upsert("r1", [1.0, 0.0, 0.0], 3)
        await store.upsert("r1", [0.0, 1.0, 0.0], 3)
        assert store.count(3) == 1

        matches = await store.nearest_neighbors([0.0, 1.0, 0.0], 3, ["r1"], 5)
        assert matches[0].distance == pytest.approx(0.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_upsert_length_mismatch_raises(self, store: VectorStore):
        with pytest.raises(ValueError, match="expected 4"):
            await store.upsert("r1", [1.0, 2.0], 4)

    @pytest.mark.asyncio
    async def test_delete_rows(self, store: VectorStore):
        for i in range(3):
            await store.upsert(f"r{i}", hash_to_vector(str(i)), FAKE_DIM)
        deleted = await store.delete_rows(["r0", "r2", "missing"], FAKE_DIM)
        assert deleted == 2
        assert store.count(FAKE_DIM) == 1
        assert store.has("r1", FAKE_DIM)

    @pytest.mark.asyncio
    async def test_delete_rows_unknown_table(self, store: VectorStore):
        assert await store.delete_rows(["r1"], 7) == 0


# ==================================================================
# Nearest neighbours
# ==================================================================


class TestNearestNeighbors:
    @pytest.mark.asyncio
    async def test_orders_by_ascending_distance(self, store: VectorStore):
        await store.upsert("same", [1.0, 0.0, 0.0], 3)
        await store.upsert("close", [1.0, 1.0, 0.0], 3)
        await store.upsert("orthogonal", [0.0, 0.0, 1.0], 3)
        await store.upsert("opposite", [-1.0, 0.0, 0.0], 3)

        matches = await store.nearest_neighbors(
            [1.0, 0.0, 0.0], 3, ["same", "close", "orthogonal", "opposite"], 10
        )

        assert [m.row_id for m in matches] == ["same", "close", "orthogonal", "opposite"]
        assert all(isinstance(m, VectorMatch) for m in matches)
        assert matches[0].distance == pytest.approx(0.0, abs=1e-6)
        assert matches[2].distance == pytest.approx(1.0, abs=1e-6)
        assert matches[3].distance == pytest.approx(2.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_restricted_to_candidates(self, store: VectorStore):
        await store.upsert("a", [1.0, 0.0], 2)
        await store.upsert("b", [0.9, 0.1], 2)
        await store.upsert("c", [0.0, 1.0], 2)

        matches = await store.nearest_neighbors([1.0, 0.0], 2, ["c", "b"], 10)

        assert [m.row_id for m in matches] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_limit(self, store: VectorStore):
        ids = [f"r{i}" for i in range(10)]
        for row_id in ids:
            await store.upsert(row_id, hash_to_vector(row_id), FAKE_DIM)
        matches = await store.nearest_neighbors(hash_to_vector("r3"), FAKE_DIM, ids, 4)
        assert len(matches) == 4
        assert matches[0].row_id == "r3"

    @pytest.mark.asyncio
    async def test_unknown_candidates_ignored(self, store: VectorStore):
        await store.upsert("a", [1.0, 0.0], 2)
        matches = await store.nearest_neighbors([1.0, 0.0], 2, ["a", "ghost"], 10)
        assert [m.row_id for m in matches] == ["a"]

    @pytest.mark.asyncio
    async def test_empty_candidates(self, store: VectorStore):
        await store.upsert("a", [1.0, 0.0], 2)
        assert await store.nearest_neighbors([1.0, 0.0], 2, [], 10) == []

    @pytest.mark.asyncio
    async def test_missing_table(self, store: VectorStore):
        assert await store.nearest_neighbors([1.0, 0.0], 2, ["a"], 10) == []

    @pytest.mark.asyncio
    async def test_deleted_rows_are_not_returned(self, store: VectorStore):
        await store.upsert("a", [1.0, 0.0], 2)
        await store.upsert("b", [0.0, 1.0], 2)
        await store.delete_rows(["a"], 2)
        matches = await store.nearest_neighbors([1.0, 0.0], 2, ["a", "b"], 10)
        assert [m.row_id for m in matches] == ["b"]

    @pytest.mark.asyncio
    async def test_query_length_mismatch_raises(self, store: VectorStore):
        await store.upsert("a", [1.0, 0.0], 2)
        with pytest.raises(ValueError):
            await store.nearest_neighbors([1.0, 0.0, 0.0], 2, ["a"], 10)


# ==================================================================
# Missing backend
# ==================================================================


class TestWithoutBackend:
    def test_not_available(self, no_backend: VectorStore):
        assert no_backend.available is False

    def test_ensure_table_warns_and_does_nothing(
        self, no_backend: VectorStore, caplog: pytest.LogCaptureFixture
    ):
        with caplog.at_level("WARNING"):
            no_backend.ensure_table(8)
        assert no_backend.tables() == []
        assert "embeddings_vec_8" in caplog.text

    @pytest.mark.asyncio
    async def test_upsert_raises(self, no_backend: VectorStore):
        with pytest.raises(VectorBackendUnavailable):
            await no_backend.upsert("a", [1.0, 0.0], 2)

    @pytest.mark.asyncio
    async def test_nearest_neighbors_raises(self, no_backend: VectorStore):
        with pytest.raises(VectorBackendUnavailable):
            await no_backend.nearest_neighbors([1.0, 0.0], 2, ["a"], 10)

    @pytest.mark.asyncio
    async def test_delete_rows_is_harmless(self, no_backend: VectorStore):
        assert await no_backend.delete_rows(["a"], 2) == 0


# ==================================================================
# Persistence
# ==================================================================


class TestPersistence:
    @pytest.mark.asyncio
    async def test_save_and_open_round_trip(self, tmp_path: Path):
        store = VectorStore(data_dir=tmp_path)
        await store.upsert("a", [1.0, 0.0, 0.0], 3)
        await store.upsert("b", [0.0, 1.0, 0.0], 3)
        await store.upsert("c", hash_to_vector("c"), FAKE_DIM)
        await store.delete_rows(["b"], 3)
        store.save()

        assert (tmp_path / "embeddings_vec_3.usearch").exists()
        assert (tmp_path / "embeddings_vec_3.json").exists()

        reopened = VectorStore(data_dir=tmp_path)
        reopened.open()

        assert reopened.tables() == [3, FAKE_DIM]
        assert reopened.count(3) == 1
        assert reopened.has("a", 3)
        assert not reopened.has("b", 3)
        matches = await reopened.nearest_neighbors([1.0, 0.0, 0.0], 3, ["a"], 1)
        assert matches[0].row_id == "a"
        assert matches[0].distance == pytest.approx(0.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_keys_continue_after_reopen(self, tmp_path: Path):
        store = VectorStore(data_dir=tmp_path)
        await store.upsert("a", [1.0, 0.0], 2)
        store.save()

        reopened = VectorStore(data_dir=tmp_path)
        reopened.open()
        await reopened.upsert("b", [0.0, 1.0], 2)

        matches = await reopened.nearest_neighbors([0.0, 1.0], 2, ["a", "b"], 2)
        assert [m.row_id for m in matches] == ["b", "a"]

    def test_open_missing_directory(self, tmp_path: Path):
        store = VectorStore(data_dir=tmp_path / "nope")
        store.open()
        assert store.tables() == []

    @pytest.mark.asyncio
    async def test_drop_table_removes_files(self, tmp_path: Path):
        store = VectorStore(data_dir=tmp_path)
        await store.upsert("a", [1.0, 0.0], 2)
        store.save()
        store.drop_table(2)
        assert not (tmp_path / "embeddings_vec_2.usearch").exists()
        assert not (tmp_path / "embeddings_vec_2.json").exists()

    @pytest.mark.asyncio
    async def test_in_memory_save_is_noop(self, store: VectorStore):
        await store.upsert("a", [1.0, 0.0], 2)
        store.save()
        assert store.data_dir is None
