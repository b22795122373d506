"""Configuration value objects: provider config and index settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

_DEFAULT_DATA_DIR = Path.home() / ".wikiembed"

# Matches every non-hidden file for directory sources; opaque to other sources.
DEFAULT_QUERY = "**/*"


@dataclass(frozen=True, slots=True)
class EmbeddingConfig:
    """Which embedding provider and model to call, and how to reach it.

    Attributes:
        provider: Provider name (``openai``, ``ollama``, ``siliconflow`` ...).
            Stored on every record so results from different providers are
            never mixed in search.
        model: Model name, stored on every record.
        api_key: Credential passed to the provider, if it needs one.
        base_url: Endpoint override for OpenAI-compatible providers.
        dimensions: Requested output size, for models that support it.
    """

    provider: str
    model: str
    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None
    dimensions: int | None = None


@dataclass(frozen=True, slots=True)
class IndexSettings:
    """Tunables for indexing and search.

    Attributes:
        page_size: Documents fetched per content-source page.
        max_chunk_size: Maximum characters per chunk.
        search_limit: Default nearest-neighbour window for search.
        search_threshold: Default minimum similarity for search results.
        data_dir: Where the SQLite database and vector tables live.
            ``None`` keeps everything in memory.
        database_url: Explicit SQLAlchemy async URL; overrides ``data_dir``
            for the relational store.
    """

    page_size: int = 30
    max_chunk_size: int = 8000
    search_limit: int = 10
    search_threshold: float = 0.7
    data_dir: Path | None = None
    database_url: str | None = None

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            msg = f"page_size must be positive, got {self.page_size}"
            raise ValueError(msg)
        if self.max_chunk_size <= 0:
            msg = f"max_chunk_size must be positive, got {self.max_chunk_size}"
            raise ValueError(msg)
        if not 0.0 <= self.search_threshold <= 1.0:
            msg = f"search_threshold must be between 0 and 1, got {self.search_threshold}"
            raise ValueError(msg)

    @property
    def resolved_database_url(self) -> str:
        """SQLAlchemy URL for the metadata store."""
        if self.database_url:
            return self.database_url
        if self.data_dir is None:
            return "sqlite+aiosqlite://"
        return f"sqlite+aiosqlite:///{self.data_dir / 'embeddings.db'}"

    @property
    def vector_dir(self) -> Path | None:
        """Directory holding the persisted vector tables."""
        if self.data_dir is None:
            return None
        return self.data_dir / "vectors"

    def with_data_dir(self, data_dir: str | Path | None) -> IndexSettings:
        return replace(self, data_dir=Path(data_dir) if data_dir is not None else None)

    @classmethod
    def from_env(cls) -> IndexSettings:
        """Load settings from ``WIKIEMBED_*`` environment variables."""
        data_dir = Path(os.getenv("WIKIEMBED_DATA_DIR", str(_DEFAULT_DATA_DIR))).expanduser()
        return cls(
            page_size=_int_env("WIKIEMBED_PAGE_SIZE", 30),
            max_chunk_size=_int_env("WIKIEMBED_MAX_CHUNK_SIZE", 8000),
            search_limit=_int_env("WIKIEMBED_SEARCH_LIMIT", 10),
            search_threshold=_float_env("WIKIEMBED_SEARCH_THRESHOLD", 0.7),
            data_dir=data_dir,
            database_url=os.getenv("WIKIEMBED_DATABASE_URL") or None,
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        msg = f"Invalid {name} value {raw!r}: {e}"
        raise ValueError(msg) from e


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        msg = f"Invalid {name} value {raw!r}: {e}"
        raise ValueError(msg) from e
