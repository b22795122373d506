"""WikiEmbeddingService: facade over indexing, search and status."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from wikiembed.chunking import as_utc
from wikiembed.config import DEFAULT_QUERY, IndexSettings
from wikiembed.content.iterator import iterate_documents
from wikiembed.exceptions import WikiEmbedError
from wikiembed.indexing import IndexCoordinator
from wikiembed.search._engine import SearchEngine
from wikiembed.search.stores.vector import VectorStore
from wikiembed.status import StatusTracker
from wikiembed.storage.metadata import MetadataStore
from wikiembed.types import EmbeddingStats

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from wikiembed.config import EmbeddingConfig
    from wikiembed.content.protocol import ContentSource, Document
    from wikiembed.search.protocols import EmbeddingProvider
    from wikiembed.search.types import SearchResult
    from wikiembed.status import StatusSubscription
    from wikiembed.types import EmbeddingStatus, GenerationResult

logger = logging.getLogger(__name__)


class WikiEmbeddingService:
    """Embedding index and semantic search over the workspaces of a content source.

    Holds one initialized instance of every collaborator: the vector
    store, the metadata store, the status tracker, the index coordinator
    and the search engine.  Storage locations come from *settings*
    (in-memory by default); an *engine* replaces the metadata database.

    Usage::

        async with WikiEmbeddingService(source, provider) as service:
            await service.generate_embeddings("wiki", config)
            results = await service.search_similar("wiki", "tea ceremony", config)

    Operations initialize the service on first use; :meth:`close` saves
    the vector tables, ends every status subscription and releases the
    database.
    """

    def __init__(
        self,
        source: ContentSource,
        provider: EmbeddingProvider,
        *,
        settings: IndexSettings | None = None,
        data_dir: str | Path | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        settings = settings or IndexSettings()
        if data_dir is not None:
            settings = settings.with_data_dir(data_dir)
        self._settings = settings
        self._source = source
        self._provider = provider

        self._metadata = MetadataStore(settings.resolved_database_url, engine=engine)
        self._vectors = VectorStore(data_dir=settings.vector_dir)
        self._status = StatusTracker(self._metadata)
        self._coordinator = IndexCoordinator(
            source,
            provider,
            self._vectors,
            self._metadata,
            self._status,
            page_size=settings.page_size,
            max_chunk_size=settings.max_chunk_size,
        )
        self._search = SearchEngine(provider, self._vectors, self._metadata)

        self._initialized = False
        self._closed = False
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the metadata database and load saved vector tables."""
        if self._closed:
            msg = "WikiEmbeddingService is closed"
            raise WikiEmbedError(msg)
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            if self._settings.data_dir is not None:
                self._settings.data_dir.mkdir(parents=True, exist_ok=True)
            await self._metadata.open()
            self._vectors.open()
            self._initialized = True
            logger.debug("Embedding service initialized (data_dir=%s)", self._settings.data_dir)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._status.close_all()
        if self._initialized:
            self._vectors.close()
        await self._metadata.close()

    async def __aenter__(self) -> WikiEmbeddingService:
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> IndexSettings:
        return self._settings

    @property
    def metadata_store(self) -> MetadataStore:
        return self._metadata

    @property
    def vector_store(self) -> VectorStore:
        return self._vectors

    @property
    def status_tracker(self) -> StatusTracker:
        return self._status

    # ------------------------------------------------------------------
    # Indexing and search
    # ------------------------------------------------------------------

    async def generate_embeddings(
        self,
        workspace_id: str,
        config: EmbeddingConfig,
        force_update: bool = False,
        *,
        query: str = DEFAULT_QUERY,
    ) -> GenerationResult:
        """Embed new and changed documents of *workspace_id*."""
        await self.initialize()
        return await self._coordinator.generate(
            workspace_id, config, force_update, query=query
        )

    async def search_similar(
        self,
        workspace_id: str,
        query: str,
        config: EmbeddingConfig,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Return chunks of *workspace_id* similar to *query*, best first."""
        await self.initialize()
        return await self._search.search(
            workspace_id,
            query,
            config,
            limit=self._settings.search_limit if limit is None else limit,
            threshold=self._settings.search_threshold if threshold is None else threshold,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_embedding_status(self, workspace_id: str) -> EmbeddingStatus:
        await self.initialize()
        return await self._status.get(workspace_id)

    async def subscribe_to_embedding_status(self, workspace_id: str) -> StatusSubscription:
        """Subscribe to status updates; the first item is the current status."""
        await self.initialize()
        return await self._status.subscribe(workspace_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def delete_workspace_embeddings(self, workspace_id: str) -> None:
        """Delete every vector, record and the status of *workspace_id*.

        Vectors are removed first, one table at a time; a failing table is
        logged and the metadata cleanup still runs.  Subscribers of the
        workspace see their subscription end.
        """
        await self.initialize()
        records = await self._metadata.list_records(workspace_id)

        by_dimensions: dict[int, list[str]] = defaultdict(list)
        for record in records:
            by_dimensions[record.dimensions].append(record.id)
        for dimensions, row_ids in by_dimensions.items():
            try:
                await self._vectors.delete_rows(row_ids, dimensions)
            except Exception:
                logger.warning(
                    "Failed to delete %d vectors of %s from the %d-dimension table",
                    len(row_ids),
                    workspace_id,
                    dimensions,
                    exc_info=True,
                )

        deleted = await self._metadata.delete_workspace_records(workspace_id)
        await self._status.delete(workspace_id)
        self._vectors.save()
        logger.info("Deleted %d embeddings of %s", len(deleted), workspace_id)

    async def get_embedding_stats(self, workspace_id: str) -> EmbeddingStats:
        """Summarize the stored embeddings; zeroed stats if they cannot be read."""
        await self.initialize()
        try:
            total_embeddings = await self._metadata.count_records(workspace_id)
            total_notes = await self._metadata.count_documents(workspace_id)
            latest = await self._metadata.latest_record(workspace_id)
        except Exception:
            logger.warning("Failed to read embedding stats of %s", workspace_id, exc_info=True)
            return EmbeddingStats()

        if latest is None:
            return EmbeddingStats(total_embeddings=total_embeddings, total_notes=total_notes)
        return EmbeddingStats(
            total_embeddings=total_embeddings,
            total_notes=total_notes,
            last_updated=as_utc(latest.modified),
            model_used=latest.model,
            provider_used=latest.provider,
        )

    async def get_documents(
        self, workspace_id: str, query: str = DEFAULT_QUERY
    ) -> list[Document]:
        """Return every document of *workspace_id* in one list."""
        return [
            document
            async for document in iterate_documents(
                self._source, workspace_id, query, self._settings.page_size
            )
        ]
