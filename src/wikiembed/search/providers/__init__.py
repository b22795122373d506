"""Embedding providers: protocol and implementations.

Both implementations import without their optional dependency installed
and raise ``ImportError`` with an install hint when constructed.
"""

from wikiembed.search.protocols import EmbeddingProvider
from wikiembed.search.providers.openai import OpenAIEmbeddingProvider
from wikiembed.search.providers.sentence_transformers import SentenceTransformerProvider

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerProvider",
]
