"""Content sources and paginated traversal."""

from wikiembed.content.directory import DirectoryContentSource
from wikiembed.content.iterator import ContentCursor, iterate_documents
from wikiembed.content.memory import InMemoryContentSource
from wikiembed.content.protocol import ContentSource, Document

__all__ = [
    "ContentCursor",
    "ContentSource",
    "DirectoryContentSource",
    "Document",
    "InMemoryContentSource",
    "iterate_documents",
]
