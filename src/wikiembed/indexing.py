"""IndexCoordinator: incremental embedding generation for a workspace."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from wikiembed.chunking import DEFAULT_MAX_CHUNK_SIZE, chunk_content, content_signature, utcnow
from wikiembed.config import DEFAULT_QUERY
from wikiembed.content.iterator import DEFAULT_PAGE_SIZE, ContentCursor
from wikiembed.exceptions import StorageWriteError
from wikiembed.models.embeddings import EmbeddingRecord
from wikiembed.search.protocols import embed_text
from wikiembed.types import EmbeddingProgress, EmbeddingState, GenerationResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wikiembed.config import EmbeddingConfig
    from wikiembed.content.protocol import ContentSource, Document
    from wikiembed.search.protocols import EmbeddingProvider
    from wikiembed.search.stores.vector import VectorStore
    from wikiembed.status import StatusTracker
    from wikiembed.storage.metadata import MetadataStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2


class IndexCoordinator:
    """Turns the documents of a workspace into stored chunk embeddings.

    A run walks the content source page by page and handles one document
    at a time:

    - blank documents are skipped and not counted;
    - a document whose signature is already stored for the same model and
      provider, with its vector present, is unchanged and counts as
      completed without any provider call (unless ``force_update``);
    - otherwise the previous generation of the document (records and
      vectors) is deleted, the text is chunked and every chunk is embedded
      and stored.

    A failing document is logged, its partial generation removed and the
    run moves on, so the document is retried by the next run.  Failures
    outside a single document (counting, paging, status) mark the run as
    ``error`` and propagate.

    Storing a chunk writes the metadata record first and then the vector;
    if the vector write fails the record is deleted again.  A failed write
    reconnects the metadata store and is retried up to *max_attempts*
    times in total before :class:`StorageWriteError` is raised.

    Vector tables are saved after every page and again when the run ends,
    whether it succeeds or not, so an interrupted run loses at most the
    vectors of one page.
    """

    def __init__(
        self,
        source: ContentSource,
        provider: EmbeddingProvider,
        vector_store: VectorStore,
        metadata_store: MetadataStore,
        status: StatusTracker,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)
        self._source = source
        self._provider = provider
        self._vectors = vector_store
        self._metadata = metadata_store
        self._status = status
        self._page_size = page_size
        self._max_chunk_size = max_chunk_size
        self._max_attempts = max_attempts

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def generate(
        self,
        workspace_id: str,
        config: EmbeddingConfig,
        force_update: bool = False,
        *,
        query: str = DEFAULT_QUERY,
    ) -> GenerationResult:
        """Bring the embeddings of *workspace_id* up to date with its documents."""
        try:
            return await self._run(workspace_id, config, force_update, query)
        except Exception as e:
            logger.exception("Embedding generation failed for %s", workspace_id)
            await self._status.update(
                workspace_id,
                status=EmbeddingState.ERROR,
                error=str(e) or type(e).__name__,
            )
            raise
        finally:
            self._save_vectors()

    async def _run(
        self,
        workspace_id: str,
        config: EmbeddingConfig,
        force_update: bool,
        query: str,
    ) -> GenerationResult:
        cursor = ContentCursor(self._source, workspace_id, query, self._page_size)
        total = await cursor.start()
        logger.info(
            "Generating %s/%s embeddings for %d documents of %s",
            config.provider,
            config.model,
            total,
            workspace_id,
        )
        await self._status.update(
            workspace_id,
            status=EmbeddingState.GENERATING,
            progress=EmbeddingProgress(total=total, completed=0),
            error=None,
        )

        completed = skipped = failed = 0
        while cursor.has_next():
            for document in await cursor.next_page():
                await self._status.update(
                    workspace_id,
                    progress=EmbeddingProgress(
                        total=total, completed=completed, current=document.title
                    ),
                )

                if not document.text.strip():
                    logger.debug("Skipping empty document %s", document.title)
                    continue

                content_hash = content_signature(document.text, document.modified)
                if not force_update and await self._is_unchanged(
                    workspace_id, document.title, content_hash, config
                ):
                    completed += 1
                    skipped += 1
                    continue

                await self._delete_document(workspace_id, document.title, config)
                try:
                    chunk_count = await self._embed_document(
                        workspace_id, document, content_hash, config
                    )
                except Exception:
                    failed += 1
                    logger.warning(
                        "Failed to embed %s in %s", document.title, workspace_id, exc_info=True
                    )
                    await self._discard_document(workspace_id, document.title, config)
                    continue

                completed += 1
                logger.debug("Embedded %s as %d chunks", document.title, chunk_count)
                await self._status.update(
                    workspace_id,
                    progress=EmbeddingProgress(
                        total=total, completed=completed, current=document.title
                    ),
                )

            # Committed records must not outlive their unsaved vectors.
            self._vectors.save()

        await self._status.update(
            workspace_id,
            status=EmbeddingState.COMPLETED,
            progress=EmbeddingProgress(total=total, completed=completed),
            last_completed=utcnow(),
        )
        logger.info(
            "Finished %s: %d/%d documents (%d unchanged, %d failed)",
            workspace_id,
            completed,
            total,
            skipped,
            failed,
        )
        return GenerationResult(total=total, completed=completed, skipped=skipped, failed=failed)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def _is_unchanged(
        self,
        workspace_id: str,
        title: str,
        content_hash: str,
        config: EmbeddingConfig,
    ) -> bool:
        existing = await self._metadata.find_record(
            workspace_id, title, content_hash, config.model, config.provider
        )
        if existing is None:
            return False
        if not self._vectors.has(existing.id, existing.dimensions):
            logger.info("Re-embedding %s: stored record has no vector", title)
            return False
        return True

    def _save_vectors(self) -> None:
        try:
            self._vectors.save()
        except Exception:
            logger.warning("Failed to save vector tables", exc_info=True)

    async def _embed_document(
        self,
        workspace_id: str,
        document: Document,
        content_hash: str,
        config: EmbeddingConfig,
    ) -> int:
        """Embed and store every chunk of *document*; return the chunk count."""
        chunks = chunk_content(document.text, self._max_chunk_size)
        total_chunks = len(chunks)
        for index, chunk in enumerate(chunks):
            vector = await embed_text(self._provider, chunk, config)
            now = utcnow()
            fields: dict[str, Any] = {
                "id": str(uuid.uuid4()),
                "workspace_id": workspace_id,
                "document_title": document.title,
                "content": chunk,
                "content_hash": content_hash,
                "chunk_index": index if total_chunks > 1 else None,
                "total_chunks": total_chunks if total_chunks > 1 else None,
                "model": config.model,
                "provider": config.provider,
                "dimensions": len(vector),
                "created": now,
                "modified": now,
            }
            await self._store_chunk(fields, vector)
        return total_chunks

    async def _store_chunk(self, fields: dict[str, Any], vector: list[float]) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._write_chunk(EmbeddingRecord(**fields), vector)
                return
            except Exception as e:
                last_error = e
                logger.warning(
                    "Failed to store chunk of %s (attempt %d/%d)",
                    fields["document_title"],
                    attempt,
                    self._max_attempts,
                    exc_info=True,
                )
                if attempt < self._max_attempts:
                    await self._metadata.reconnect()

        msg = (
            f"Failed to store chunk of {fields['document_title']} "
            f"after {self._max_attempts} attempts: {last_error}"
        )
        raise StorageWriteError(msg) from last_error

    async def _write_chunk(self, record: EmbeddingRecord, vector: list[float]) -> None:
        stored = await self._metadata.add_record(record)
        try:
            await self._vectors.upsert(stored.id, vector, stored.dimensions)
        except Exception:
            # No record may outlive a failed vector write.
            try:
                await self._metadata.delete_record(stored.id)
            except Exception:
                logger.warning("Failed to remove orphaned record %s", stored.id, exc_info=True)
            raise

    async def _delete_document(
        self, workspace_id: str, title: str, config: EmbeddingConfig
    ) -> None:
        """Delete the current generation of a document, records and vectors."""
        deleted = await self._metadata.delete_document_records(
            workspace_id, title, config.model, config.provider
        )
        await self._delete_vectors(deleted)

    async def _discard_document(
        self, workspace_id: str, title: str, config: EmbeddingConfig
    ) -> None:
        """Best-effort removal of a partially written document."""
        try:
            await self._delete_document(workspace_id, title, config)
        except Exception:
            logger.warning(
                "Failed to remove partial embeddings of %s in %s",
                title,
                workspace_id,
                exc_info=True,
            )

    async def _delete_vectors(self, records: Iterable[EmbeddingRecord]) -> None:
        by_dimensions: dict[int, list[str]] = defaultdict(list)
        for record in records:
            by_dimensions[record.dimensions].append(record.id)
        for dimensions, row_ids in by_dimensions.items():
            await self._vectors.delete_rows(row_ids, dimensions)
