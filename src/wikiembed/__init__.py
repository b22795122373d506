"""wikiembed: incremental embedding index and semantic search for wiki workspaces.

Paginated corpus traversal, boundary-aware chunking, change detection and
per-dimension vector tables, tied together by :class:`WikiEmbeddingService`.
"""

__version__ = "0.1.0"

from wikiembed._service import WikiEmbeddingService
from wikiembed.chunking import chunk_content, content_signature
from wikiembed.config import DEFAULT_QUERY, EmbeddingConfig, IndexSettings
from wikiembed.content import (
    ContentCursor,
    ContentSource,
    DirectoryContentSource,
    Document,
    InMemoryContentSource,
    iterate_documents,
)
from wikiembed.exceptions import (
    ContentSourceError,
    EmbeddingProviderError,
    StorageWriteError,
    VectorBackendUnavailable,
    WikiEmbedError,
    WorkspaceNotFoundError,
)
from wikiembed.indexing import IndexCoordinator
from wikiembed.models import EmbeddingRecord, EmbeddingStatusRecord
from wikiembed.search import (
    EmbeddingProvider,
    EmbeddingResponse,
    ErrorDetail,
    SearchEngine,
    SearchResult,
    VectorMatch,
    VectorStore,
)
from wikiembed.status import StatusSubscription, StatusTracker
from wikiembed.storage import MetadataStore
from wikiembed.types import (
    EmbeddingProgress,
    EmbeddingState,
    EmbeddingStats,
    EmbeddingStatus,
    GenerationResult,
)

__all__ = [
    "DEFAULT_QUERY",
    "ContentCursor",
    "ContentSource",
    "ContentSourceError",
    "DirectoryContentSource",
    "Document",
    "EmbeddingConfig",
    "EmbeddingProgress",
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "EmbeddingRecord",
    "EmbeddingResponse",
    "EmbeddingState",
    "EmbeddingStats",
    "EmbeddingStatus",
    "EmbeddingStatusRecord",
    "ErrorDetail",
    "GenerationResult",
    "InMemoryContentSource",
    "IndexCoordinator",
    "IndexSettings",
    "MetadataStore",
    "SearchEngine",
    "SearchResult",
    "StatusSubscription",
    "StatusTracker",
    "StorageWriteError",
    "VectorBackendUnavailable",
    "VectorMatch",
    "VectorStore",
    "WikiEmbedError",
    "WikiEmbeddingService",
    "WorkspaceNotFoundError",
    "__version__",
    "chunk_content",
    "content_signature",
    "iterate_documents",
]
