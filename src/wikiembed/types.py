"""Value objects for indexing status, progress, and statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from wikiembed.chunking import as_utc

if TYPE_CHECKING:
    from wikiembed.models.status import EmbeddingStatusRecord


class EmbeddingState(StrEnum):
    """Lifecycle of a workspace's embeddings.

    Within one run: ``idle -> generating -> (completed | error)``.  A new
    run may go back to ``generating`` from ``completed`` or ``error``.
    """

    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class EmbeddingProgress:
    """Progress counters of a generation run.

    Attributes:
        total: Documents reported by the content source.
        completed: Documents embedded or found unchanged so far.
        current: Title of the document being processed.
    """

    total: int = 0
    completed: int = 0
    current: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"total": self.total, "completed": self.completed}
        if self.current is not None:
            data["current"] = self.current
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EmbeddingProgress | None:
        if data is None:
            return None
        return cls(
            total=int(data.get("total", 0)),
            completed=int(data.get("completed", 0)),
            current=data.get("current"),
        )


@dataclass(frozen=True, slots=True)
class EmbeddingStatus:
    """Immutable snapshot of a workspace's indexing status.

    Snapshots are what subscribers receive, so a later update never
    changes a status that was already delivered.

    Attributes:
        workspace_id: Workspace the status belongs to.
        status: Current lifecycle state.
        progress: Counters of the current or last run, if any.
        error: Message of the last fatal error.
        last_updated: When the status last changed.
        last_completed: When a run last finished successfully.
    """

    workspace_id: str
    status: EmbeddingState = EmbeddingState.IDLE
    progress: EmbeddingProgress | None = None
    error: str | None = None
    last_updated: datetime | None = None
    last_completed: datetime | None = None

    @classmethod
    def default(cls, workspace_id: str) -> EmbeddingStatus:
        return cls(workspace_id=workspace_id, last_updated=datetime.now(UTC))

    @classmethod
    def from_record(cls, record: EmbeddingStatusRecord) -> EmbeddingStatus:
        return cls(
            workspace_id=record.workspace_id,
            status=EmbeddingState(record.status),
            progress=EmbeddingProgress.from_dict(record.progress),
            error=record.error,
            last_updated=as_utc(record.last_updated),
            last_completed=as_utc(record.last_completed),
        )


@dataclass(frozen=True, slots=True)
class EmbeddingStats:
    """Aggregate statistics over a workspace's embeddings.

    Attributes:
        total_embeddings: Number of chunk records.
        total_notes: Number of distinct document titles.
        last_updated: ``modified`` of the most recent record.
        model_used: Model of the most recent record.
        provider_used: Provider of the most recent record.
    """

    total_embeddings: int = 0
    total_notes: int = 0
    last_updated: datetime | None = None
    model_used: str | None = None
    provider_used: str | None = None


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Outcome of one generation run.

    Attributes:
        total: Documents reported by the content source.
        completed: Documents embedded or found unchanged.
        skipped: Documents found unchanged (subset of ``completed``).
        failed: Documents whose embedding failed.
    """

    total: int
    completed: int
    skipped: int = 0
    failed: int = 0
