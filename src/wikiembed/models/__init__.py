"""SQLModel database models for wikiembed."""

from wikiembed.models.embeddings import EmbeddingRecord
from wikiembed.models.status import EmbeddingStatusRecord

__all__ = [
    "EmbeddingRecord",
    "EmbeddingStatusRecord",
]
