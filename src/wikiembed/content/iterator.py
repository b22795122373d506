"""Paginated traversal of a content source."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wikiembed.config import DEFAULT_QUERY

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from wikiembed.content.protocol import ContentSource, Document

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 30


class ContentCursor:
    """Explicit cursor over the documents of one workspace.

    Call :meth:`start` once to learn the total, then :meth:`next_page`
    while :meth:`has_next` is true.  The cursor stops at the reported
    total, on an empty page, or on a page shorter than *page_size*,
    whichever comes first; a short page is authoritative even if the
    reported total was larger.
    """

    def __init__(
        self,
        source: ContentSource,
        workspace_id: str,
        query: str = DEFAULT_QUERY,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            msg = f"page_size must be positive, got {page_size}"
            raise ValueError(msg)
        self.source = source
        self.workspace_id = workspace_id
        self.query = query
        self.page_size = page_size
        self.offset = 0
        self.total: int | None = None
        self._exhausted = False

    async def start(self) -> int:
        """Fetch and return the total document count."""
        self.total = await self.source.count_documents(self.workspace_id, self.query)
        self.offset = 0
        self._exhausted = self.total <= 0
        return self.total

    def has_next(self) -> bool:
        if self.total is None:
            msg = "ContentCursor.start() must be awaited before iterating"
            raise RuntimeError(msg)
        return not self._exhausted and self.offset < self.total

    async def next_page(self) -> list[Document]:
        """Fetch the next page and advance by the number of documents returned."""
        if not self.has_next():
            return []
        page = await self.source.fetch_page(
            self.workspace_id, self.query, self.offset, self.page_size
        )
        self.offset += len(page)
        if len(page) < self.page_size:
            self._exhausted = True
        logger.debug(
            "Fetched %d documents of %s (offset %d/%s)",
            len(page),
            self.workspace_id,
            self.offset,
            self.total,
        )
        return page


async def iterate_documents(
    source: ContentSource,
    workspace_id: str,
    query: str = DEFAULT_QUERY,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> AsyncIterator[Document]:
    """Yield the documents of *workspace_id* one at a time, page by page."""
    cursor = ContentCursor(source, workspace_id, query, page_size)
    await cursor.start()
    while cursor.has_next():
        for document in await cursor.next_page():
            yield document
