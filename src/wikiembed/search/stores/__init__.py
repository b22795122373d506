"""Vector stores."""

from wikiembed.search.stores.vector import VectorStore, table_name

__all__ = [
    "VectorStore",
    "table_name",
]
