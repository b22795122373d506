"""Shared fixtures for wikiembed tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from wikiembed.config import EmbeddingConfig
from wikiembed.content.memory import InMemoryContentSource
from wikiembed.search.stores.vector import VectorStore
from wikiembed.status import StatusTracker
from wikiembed.storage.metadata import MetadataStore

from tests.fakes import FakeProvider

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
def config() -> EmbeddingConfig:
    return EmbeddingConfig(provider="fake", model="fake-test-model")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def metadata_store() -> AsyncIterator[MetadataStore]:
    """Metadata store on its own in-memory database."""
    store = MetadataStore()
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def vector_store() -> VectorStore:
    return VectorStore()


@pytest.fixture
def status_tracker(metadata_store: MetadataStore) -> StatusTracker:
    return StatusTracker(metadata_store)


@pytest.fixture
def source() -> InMemoryContentSource:
    src = InMemoryContentSource()
    src.add_workspace("wiki")
    return src
