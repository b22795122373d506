"""Content source protocol and the document value type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class Document:
    """One source document.

    Attributes:
        title: Unique name of the document within its workspace.
        text: Full text to embed.
        modified: Last modification time, if the source knows it.
    """

    title: str
    text: str
    modified: datetime | None = None


@runtime_checkable
class ContentSource(Protocol):
    """Paginated access to the documents of a workspace.

    ``query`` is opaque to the indexer and passed through verbatim.
    Implementations raise :class:`~wikiembed.exceptions.WorkspaceNotFoundError`
    for an unknown workspace and
    :class:`~wikiembed.exceptions.ContentSourceError` for other failures.
    """

    async def count_documents(self, workspace_id: str, query: str) -> int:
        """Return how many documents match *query*."""
        ...

    async def fetch_page(
        self, workspace_id: str, query: str, offset: int, limit: int
    ) -> list[Document]:
        """Return up to *limit* matching documents starting at *offset*."""
        ...
