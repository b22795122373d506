"""InMemoryContentSource: dictionary-backed content source."""

from __future__ import annotations

import fnmatch
from typing import TYPE_CHECKING

from wikiembed.config import DEFAULT_QUERY
from wikiembed.content.protocol import Document
from wikiembed.exceptions import WorkspaceNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


class InMemoryContentSource:
    """Content source holding workspaces as ordered title → document maps.

    The query is matched against titles with :mod:`fnmatch`; the default
    ``**/*`` and ``*`` match every document.
    """

    def __init__(self) -> None:
        self._workspaces: dict[str, dict[str, Document]] = {}

    def add_workspace(self, workspace_id: str, documents: Iterable[Document] = ()) -> None:
        workspace = self._workspaces.setdefault(workspace_id, {})
        for document in documents:
            workspace[document.title] = document

    def put(
        self,
        workspace_id: str,
        title: str,
        text: str,
        modified: datetime | None = None,
    ) -> Document:
        """Add or replace a document, creating the workspace if needed."""
        document = Document(title=title, text=text, modified=modified)
        self._workspaces.setdefault(workspace_id, {})[title] = document
        return document

    def remove(self, workspace_id: str, title: str) -> bool:
        return self._workspace(workspace_id).pop(title, None) is not None

    def remove_workspace(self, workspace_id: str) -> None:
        self._workspaces.pop(workspace_id, None)

    async def count_documents(self, workspace_id: str, query: str = DEFAULT_QUERY) -> int:
        return len(self._matching(workspace_id, query))

    async def fetch_page(
        self, workspace_id: str, query: str, offset: int, limit: int
    ) -> list[Document]:
        return self._matching(workspace_id, query)[offset : offset + limit]

    def _workspace(self, workspace_id: str) -> dict[str, Document]:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            msg = f"Workspace not found: {workspace_id}"
            raise WorkspaceNotFoundError(msg)
        return workspace

    def _matching(self, workspace_id: str, query: str) -> list[Document]:
        documents = list(self._workspace(workspace_id).values())
        if query in ("", "*", DEFAULT_QUERY):
            return documents
        return [d for d in documents if fnmatch.fnmatchcase(d.title, query)]
