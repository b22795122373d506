"""VectorStore: per-dimension usearch tables keyed by record id."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from wikiembed.exceptions import VectorBackendUnavailable
from wikiembed.search.types import VectorMatch

try:
    from usearch.index import Index

    _HAS_USEARCH = True
except ImportError:  # pragma: no cover
    _HAS_USEARCH = False

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

_TABLE_PREFIX = "embeddings_vec_"
_INDEX_SUFFIX = ".usearch"
_META_SUFFIX = ".json"


def table_name(dimensions: int) -> str:
    """Return the name of the vector table holding *dimensions*-long vectors."""
    return f"{_TABLE_PREFIX}{dimensions}"


class _VectorTable:
    """One usearch index plus the mapping between row ids and usearch keys."""

    def __init__(self, dimensions: int) -> None:
        self.dimensions = dimensions
        self.index = Index(ndim=dimensions, metric="cos", dtype="f32")
        self.next_key: int = 0
        self.id_to_key: dict[str, int] = {}
        self.key_to_id: dict[int, str] = {}

    def __len__(self) -> int:
        return len(self.id_to_key)

    def add(self, row_id: str, vector: np.ndarray) -> None:
        self.remove(row_id)
        key = self.next_key
        self.next_key += 1
        self.index.add(key, vector)
        self.id_to_key[row_id] = key
        self.key_to_id[key] = row_id

    def remove(self, row_id: str) -> bool:
        key = self.id_to_key.pop(row_id, None)
        if key is None:
            return False
        self.key_to_id.pop(key, None)
        self.index.remove(key)
        return True

    def vector(self, row_id: str) -> np.ndarray | None:
        key = self.id_to_key.get(row_id)
        if key is None:
            return None
        stored: Any = self.index.get(key)
        if stored is None:
            return None
        return np.asarray(stored, dtype=np.float32).reshape(-1)

    def sidecar(self) -> dict[str, Any]:
        return {
            "dimensions": self.dimensions,
            "next_key": self.next_key,
            "id_to_key": self.id_to_key,
        }

    def restore(self, sidecar: dict[str, Any]) -> None:
        self.next_key = int(sidecar["next_key"])
        self.id_to_key = {row_id: int(key) for row_id, key in sidecar["id_to_key"].items()}
        self.key_to_id = {key: row_id for row_id, key in self.id_to_key.items()}


class VectorStore:
    """Dimension-specific similarity-search tables.

    Every vector length gets its own table (``embeddings_vec_<dim>``),
    created lazily on first use.  Rows are keyed by the id of the metadata
    record they belong to, so deleting a record's vector only needs the
    record.  Nearest-neighbour lookups are restricted to a candidate set of
    row ids and computed exactly over those candidates.

    With *data_dir* the tables are persisted there by :meth:`save` and
    restored by :meth:`open`; without it the store lives in memory.

    When ``usearch`` is not importable the store is inert:
    :meth:`ensure_table` only warns, while :meth:`upsert` and
    :meth:`nearest_neighbors` raise :class:`VectorBackendUnavailable`.

    Thread-safe via :class:`threading.Lock`.
    """

    def __init__(self, *, data_dir: str | Path | None = None) -> None:
        self._data_dir = Path(data_dir) if data_dir is not None else None
        self._available = _HAS_USEARCH
        self._tables: dict[int, _VectorTable] = {}
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        """Whether a vector backend is loaded."""
        return self._available

    @property
    def data_dir(self) -> Path | None:
        return self._data_dir

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def ensure_table(self, dimensions: int) -> None:
        """Create the table for *dimensions* if it does not exist yet."""
        if dimensions <= 0:
            msg = f"dimensions must be positive, got {dimensions}"
            raise ValueError(msg)
        if not self._available:
            logger.warning(
                "Vector backend not available; cannot create %s", table_name(dimensions)
            )
            return
        with self._lock:
            if dimensions not in self._tables:
                self._tables[dimensions] = _VectorTable(dimensions)
                logger.debug("Created vector table %s", table_name(dimensions))

    def drop_table(self, dimensions: int) -> None:
        """Remove the table for *dimensions* and its saved files."""
        with self._lock:
            self._tables.pop(dimensions, None)
        if self._data_dir is not None:
            for path in _table_paths(self._data_dir, dimensions):
                path.unlink(missing_ok=True)

    def tables(self) -> list[int]:
        """Return the dimensionalities that currently have a table."""
        with self._lock:
            return sorted(self._tables)

    def count(self, dimensions: int) -> int:
        """Return the number of rows in the table for *dimensions*."""
        with self._lock:
            table = self._tables.get(dimensions)
            return len(table) if table is not None else 0

    def has(self, row_id: str, dimensions: int) -> bool:
        """Return whether *row_id* has a vector in the table for *dimensions*."""
        with self._lock:
            table = self._tables.get(dimensions)
            return table is not None and row_id in table.id_to_key

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    async def upsert(self, row_id: str, vector: Sequence[float], dimensions: int) -> None:
        """Insert or replace the vector stored under *row_id*."""
        self._require_backend()
        array = np.asarray(vector, dtype=np.float32)
        if array.ndim != 1 or array.shape[0] != dimensions:
            msg = f"Vector has {array.size} values, expected {dimensions}"
            raise ValueError(msg)

        self.ensure_table(dimensions)
        with self._lock:
            self._tables[dimensions].add(row_id, array)

    async def delete_rows(self, row_ids: Iterable[str], dimensions: int) -> int:
        """Delete the vectors of *row_ids*; unknown ids and tables are ignored."""
        with self._lock:
            table = self._tables.get(dimensions)
            if table is None:
                return 0
            return sum(1 for row_id in row_ids if table.remove(row_id))

    async def nearest_neighbors(
        self,
        query_vector: Sequence[float],
        dimensions: int,
        candidate_row_ids: Iterable[str],
        limit: int,
    ) -> list[VectorMatch]:
        """Return up to *limit* candidates closest to *query_vector*.

        Results are ordered by ascending cosine distance (``0`` identical,
        ``2`` opposite).  Candidates without a stored vector are ignored.
        """
        self._require_backend()
        if limit <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        if query.ndim != 1 or query.shape[0] != dimensions:
            msg = f"Query vector has {query.size} values, expected {dimensions}"
            raise ValueError(msg)

        row_ids: list[str] = []
        vectors: list[np.ndarray] = []
        with self._lock:
            table = self._tables.get(dimensions)
            if table is None:
                return []
            for row_id in dict.fromkeys(candidate_row_ids):
                stored = table.vector(row_id)
                if stored is not None:
                    row_ids.append(row_id)
                    vectors.append(stored)

        if not row_ids:
            return []

        distances = _cosine_distances(query, np.vstack(vectors))
        order = np.argsort(distances, kind="stable")[:limit]
        return [VectorMatch(row_id=row_ids[i], distance=float(distances[i])) for i in order]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Load every table previously saved under ``data_dir``."""
        if self._data_dir is None:
            return
        if not self._available:
            logger.warning("Vector backend not available; not loading %s", self._data_dir)
            return
        if not self._data_dir.is_dir():
            return

        loaded: dict[int, _VectorTable] = {}
        for index_path in sorted(self._data_dir.glob(f"{_TABLE_PREFIX}*{_INDEX_SUFFIX}")):
            meta_path = index_path.with_suffix(_META_SUFFIX)
            if not meta_path.exists():
                logger.warning("Skipping %s: missing %s", index_path.name, meta_path.name)
                continue
            with meta_path.open() as f:
                sidecar = json.load(f)
            table = _VectorTable(int(sidecar["dimensions"]))
            table.index.load(str(index_path))
            table.restore(sidecar)
            loaded[table.dimensions] = table

        with self._lock:
            self._tables = loaded
        logger.debug("Loaded %d vector tables from %s", len(loaded), self._data_dir)

    def save(self) -> None:
        """Persist every table to ``data_dir``.  No-op for in-memory stores."""
        if self._data_dir is None or not self._available:
            return
        self._data_dir.mkdir(parents=True, exist_ok=True)

        with self._lock:
            for dimensions, table in self._tables.items():
                index_path, meta_path = _table_paths(self._data_dir, dimensions)
                table.index.save(str(index_path))
                with meta_path.open("w") as f:
                    json.dump(table.sidecar(), f)

    def close(self) -> None:
        """Save and release every table."""
        self.save()
        with self._lock:
            self._tables = {}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_backend(self) -> None:
        if not self._available:
            msg = "Vector search backend is not available. Install it with: pip install usearch"
            raise VectorBackendUnavailable(msg)


def _table_paths(data_dir: Path, dimensions: int) -> tuple[Path, Path]:
    """Return the index file and sidecar file of the table for *dimensions*."""
    name = table_name(dimensions)
    return data_dir / f"{name}{_INDEX_SUFFIX}", data_dir / f"{name}{_META_SUFFIX}"

def _cosine_distances(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine distance from *query* to every row of *matrix*, clipped to [0, 2]."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        similarity = np.where(norms > 0, dots / norms, 0.0)
    return np.clip(1.0 - similarity, 0.0, 2.0)
