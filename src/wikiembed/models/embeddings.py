"""EmbeddingRecord model: one row per embedded chunk.

The vector itself lives in the dimension-specific vector table; ``id`` is
the row key shared by both stores.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class EmbeddingRecord(SQLModel, table=True):
    """Metadata for a single embedded chunk of a document."""

    __tablename__ = "wikiembed_embeddings"
    __table_args__ = (
        Index(
            "ix_wikiembed_embeddings_document",
            "workspace_id",
            "document_title",
            "model",
            "provider",
        ),
        Index(
            "ix_wikiembed_embeddings_scope",
            "workspace_id",
            "model",
            "provider",
            "dimensions",
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    workspace_id: str = Field(index=True)
    document_title: str = Field(index=True)
    content: str = Field(default="")
    content_hash: str = Field(default="")
    chunk_index: int | None = Field(default=None)
    total_chunks: int | None = Field(default=None)
    model: str = Field(default="")
    provider: str = Field(default="")
    dimensions: int = Field(default=0)
    created: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    modified: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
