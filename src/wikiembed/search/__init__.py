"""Vector search layer: engine, vector store, embedding providers."""

from wikiembed.search._engine import SearchEngine
from wikiembed.search.protocols import EmbeddingProvider, embed_text
from wikiembed.search.stores.vector import VectorStore
from wikiembed.search.types import (
    EmbeddingResponse,
    ErrorDetail,
    SearchResult,
    VectorMatch,
)

__all__ = [
    "EmbeddingProvider",
    "EmbeddingResponse",
    "ErrorDetail",
    "SearchEngine",
    "SearchResult",
    "VectorMatch",
    "VectorStore",
    "embed_text",
]
