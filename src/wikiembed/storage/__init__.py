"""Relational storage for chunk metadata and indexing status."""

from wikiembed.storage.metadata import MetadataStore

__all__ = ["MetadataStore"]
