"""SearchEngine: query embedding, scoped nearest neighbours, hydration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wikiembed.search.protocols import embed_text
from wikiembed.search.types import SearchResult

if TYPE_CHECKING:
    from wikiembed.config import EmbeddingConfig
    from wikiembed.search.protocols import EmbeddingProvider
    from wikiembed.search.stores.vector import VectorStore
    from wikiembed.storage.metadata import MetadataStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_THRESHOLD = 0.7


class SearchEngine:
    """Answers similarity queries over one workspace.

    Only records produced by the query's own model, provider and vector
    length are candidates, so vectors from different embedding spaces are
    never compared.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        vector_store: VectorStore,
        metadata_store: MetadataStore,
    ) -> None:
        self._provider = provider
        self._vectors = vector_store
        self._metadata = metadata_store

    async def search(
        self,
        workspace_id: str,
        query: str,
        config: EmbeddingConfig,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[SearchResult]:
        """Return chunks similar to *query*, most similar first.

        *limit* bounds the nearest-neighbour window before *threshold* is
        applied, so fewer than *limit* results may come back even when
        more chunks clear the threshold.

        Raises:
            EmbeddingProviderError: The query could not be embedded.
            VectorBackendUnavailable: No vector backend is loaded.
        """
        vector = await embed_text(self._provider, query, config)
        dimensions = len(vector)

        candidates = await self._metadata.list_records(
            workspace_id,
            model=config.model,
            provider=config.provider,
            dimensions=dimensions,
        )
        if not candidates:
            logger.debug(
                "No %s/%s records of %d dimensions in %s",
                config.provider,
                config.model,
                dimensions,
                workspace_id,
            )
            return []

        records = {record.id: record for record in candidates}
        matches = await self._vectors.nearest_neighbors(vector, dimensions, records, limit)

        results: list[SearchResult] = []
        for match in matches:
            similarity = max(0.0, 1.0 - match.distance)
            if similarity < threshold:
                continue
            record = records.get(match.row_id)
            if record is None:
                continue
            results.append(SearchResult(record=record, similarity=similarity))
        return results
