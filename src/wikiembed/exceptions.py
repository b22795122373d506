"""Custom exception hierarchy for wikiembed."""


class WikiEmbedError(Exception):
    """Base exception for all wikiembed errors."""


class ContentSourceError(WikiEmbedError):
    """Raised when the content source fails to count or fetch documents."""


class WorkspaceNotFoundError(ContentSourceError):
    """Raised when the content source has no such workspace."""


class EmbeddingProviderError(WikiEmbedError):
    """Raised when the embedding provider reports an error or returns nothing."""


class StorageWriteError(WikiEmbedError):
    """Raised when a record or vector write fails even after reconnecting."""


class VectorBackendUnavailable(WikiEmbedError):
    """Raised when the similarity-search backend is not available at runtime."""
