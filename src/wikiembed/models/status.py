"""EmbeddingStatusRecord model: durable per-workspace indexing status."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


class EmbeddingStatusRecord(SQLModel, table=True):
    """Persisted form of :class:`~wikiembed.types.EmbeddingStatus`.

    ``progress`` is stored as JSON: ``{"total": int, "completed": int,
    "current": str | None}``.
    """

    __tablename__ = "wikiembed_embedding_status"

    workspace_id: str = Field(primary_key=True)
    status: str = Field(default="idle")
    progress: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    error: str | None = Field(default=None)
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    last_completed: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
