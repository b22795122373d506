"""DirectoryContentSource: one directory per workspace, one text file per document."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from wikiembed.config import DEFAULT_QUERY
from wikiembed.content.protocol import Document
from wikiembed.exceptions import ContentSourceError, WorkspaceNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 1 * 1024 * 1024  # 1MB

_SNIFF_BYTES = 4096


def _is_binary(path: Path) -> bool:
    """Treat files with a null byte near the start as binary."""
    with path.open("rb") as f:
        return b"\x00" in f.read(_SNIFF_BYTES)


class DirectoryContentSource:
    """Content source reading text files from ``root/<workspace_id>/``.

    The query is a glob pattern relative to the workspace directory
    (default ``**/*``).  Document titles are POSIX paths relative to the
    workspace directory and ``modified`` is the file's mtime.  Hidden
    files and directories, binary files and files over *max_file_size*
    are skipped.  Documents are returned sorted by title so pages are
    stable between calls.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        encoding: str = "utf-8",
    ) -> None:
        self.root = Path(root).resolve()
        self.max_file_size = max_file_size
        self.encoding = encoding

    def workspace_dir(self, workspace_id: str) -> Path:
        """Return the directory of *workspace_id*, rejecting path traversal."""
        candidate = (self.root / workspace_id).resolve()
        if candidate == self.root or not candidate.is_relative_to(self.root):
            msg = f"Invalid workspace id: {workspace_id!r}"
            raise WorkspaceNotFoundError(msg)
        if not candidate.is_dir():
            msg = f"Workspace not found: {workspace_id}"
            raise WorkspaceNotFoundError(msg)
        return candidate

    async def count_documents(self, workspace_id: str, query: str = DEFAULT_QUERY) -> int:
        paths = await self._matching(workspace_id, query)
        return len(paths)

    async def fetch_page(
        self, workspace_id: str, query: str, offset: int, limit: int
    ) -> list[Document]:
        paths = await self._matching(workspace_id, query)
        base = self.workspace_dir(workspace_id)
        page = paths[offset : offset + limit]
        try:
            return await asyncio.to_thread(self._read_all, base, page)
        except OSError as e:
            msg = f"Failed to read documents of {workspace_id}: {e}"
            raise ContentSourceError(msg) from e

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _matching(self, workspace_id: str, query: str) -> list[Path]:
        base = self.workspace_dir(workspace_id)
        pattern = query or DEFAULT_QUERY
        try:
            return await asyncio.to_thread(self._scan, base, pattern)
        except (OSError, ValueError, NotImplementedError) as e:
            msg = f"Failed to list documents of {workspace_id} with {pattern!r}: {e}"
            raise ContentSourceError(msg) from e

    def _scan(self, base: Path, pattern: str) -> list[Path]:
        paths: list[Path] = []
        for path in base.glob(pattern):
            rel = path.relative_to(base)
            if any(part.startswith(".") for part in rel.parts):
                continue
            if not path.is_file() or path.is_symlink():
                continue
            if path.stat().st_size > self.max_file_size:
                logger.debug("Skipping %s: larger than %d bytes", rel, self.max_file_size)
                continue
            if _is_binary(path):
                continue
            paths.append(path)
        paths.sort(key=lambda p: p.relative_to(base).as_posix())
        return paths

    def _read_all(self, base: Path, paths: list[Path]) -> list[Document]:
        documents: list[Document] = []
        for path in paths:
            text = path.read_text(self.encoding, errors="replace")
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
            documents.append(
                Document(title=path.relative_to(base).as_posix(), text=text, modified=modified)
            )
        return documents
