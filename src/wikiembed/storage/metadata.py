"""MetadataStore: async SQLModel persistence for chunk records and status rows."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlalchemy import event, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import select

from wikiembed.models.embeddings import EmbeddingRecord
from wikiembed.models.status import EmbeddingStatusRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite://"


def _is_memory_url(url: str) -> bool:
    database = url.split("://", 1)[-1].lstrip("/")
    return database in ("", ":memory:") or "mode=memory" in database


class MetadataStore:
    """Relational store for :class:`EmbeddingRecord` and status rows.

    Every public method runs in its own session and commits once, so a
    call either fully applies or not at all.

    The store owns its engine unless one is passed in.  :meth:`reconnect`
    throws away the session factory and, for an owned file-backed
    database, the engine and its pooled connections; it is the recovery
    step after a failed write.  In-memory databases keep their engine,
    since disposing it would discard the data.
    """

    def __init__(
        self,
        database_url: str = DEFAULT_DATABASE_URL,
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._database_url = database_url
        self._owns_engine = engine is None
        self._engine: AsyncEngine | None = engine
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine | None:
        """The async engine, available after ``open()``."""
        return self._engine

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _ensure_db(self) -> async_sessionmaker[AsyncSession]:
        """Create the engine and tables if needed."""
        if self._session_factory is not None:
            return self._session_factory
        async with self._init_lock:
            if self._session_factory is not None:
                return self._session_factory

            if self._engine is None:
                self._engine = self._create_engine()

            async with self._engine.begin() as conn:
                record_table = EmbeddingRecord.__table__  # type: ignore[attr-defined]
                status_table = EmbeddingStatusRecord.__table__  # type: ignore[attr-defined]
                await conn.run_sync(lambda c: record_table.create(c, checkfirst=True))
                await conn.run_sync(lambda c: status_table.create(c, checkfirst=True))

            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            return self._session_factory

    def _create_engine(self) -> AsyncEngine:
        engine = create_async_engine(self._database_url, echo=False)
        if not self._database_url.startswith("sqlite") or _is_memory_url(self._database_url):
            return engine

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA journal_mode=WAL")
            result = cursor.fetchone()
            if result[0].lower() != "wal":
                logger.warning("WAL mode not active, got: %s", result[0])
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    async def open(self) -> None:
        """Initialize the database and create missing tables."""
        await self._ensure_db()

    async def reconnect(self) -> None:
        """Drop the current connections and open the database again."""
        logger.info("Reconnecting metadata store")
        async with self._init_lock:
            self._session_factory = None
            if self._engine is not None and self._owns_engine:
                if not _is_memory_url(str(self._engine.url)):
                    await self._engine.dispose()
                    self._engine = None
        await self._ensure_db()

    async def close(self) -> None:
        """Close the engine and release resources."""
        self._session_factory = None
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None

    # ------------------------------------------------------------------
    # Embedding records
    # ------------------------------------------------------------------

    async def find_record(
        self,
        workspace_id: str,
        document_title: str,
        content_hash: str,
        model: str,
        provider: str,
    ) -> EmbeddingRecord | None:
        """Return one record of the given document generation, if any."""
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(
                select(EmbeddingRecord)
                .where(
                    EmbeddingRecord.workspace_id == workspace_id,
                    EmbeddingRecord.document_title == document_title,
                    EmbeddingRecord.content_hash == content_hash,
                    EmbeddingRecord.model == model,
                    EmbeddingRecord.provider == provider,
                )
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def add_record(self, record: EmbeddingRecord) -> EmbeddingRecord:
        factory = await self._ensure_db()
        async with factory() as session:
            session.add(record)
            await session.commit()
            return record

    async def get_records(self, record_ids: Iterable[str]) -> dict[str, EmbeddingRecord]:
        """Return the records with the given ids, keyed by id."""
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return {}
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(
                select(EmbeddingRecord).where(EmbeddingRecord.id.in_(ids))  # type: ignore[attr-defined]
            )
            return {record.id: record for record in result.scalars().all()}

    async def delete_record(self, record_id: str) -> bool:
        """Delete one record.  Returns True if it existed."""
        factory = await self._ensure_db()
        async with factory() as session:
            record = await session.get(EmbeddingRecord, record_id)
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
            return True

    async def delete_document_records(
        self,
        workspace_id: str,
        document_title: str,
        model: str,
        provider: str,
    ) -> list[EmbeddingRecord]:
        """Delete every record of a document for one model/provider pair.

        Returns the deleted rows so their vectors can be removed too.
        """
        return await self._delete_where(
            EmbeddingRecord.workspace_id == workspace_id,
            EmbeddingRecord.document_title == document_title,
            EmbeddingRecord.model == model,
            EmbeddingRecord.provider == provider,
        )

    async def list_records(
        self,
        workspace_id: str,
        *,
        model: str | None = None,
        provider: str | None = None,
        dimensions: int | None = None,
    ) -> list[EmbeddingRecord]:
        """Return the workspace's records, optionally narrowed to one producer."""
        conditions = [EmbeddingRecord.workspace_id == workspace_id]
        if model is not None:
            conditions.append(EmbeddingRecord.model == model)
        if provider is not None:
            conditions.append(EmbeddingRecord.provider == provider)
        if dimensions is not None:
            conditions.append(EmbeddingRecord.dimensions == dimensions)

        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(select(EmbeddingRecord).where(*conditions))
            return list(result.scalars().all())

    async def delete_workspace_records(self, workspace_id: str) -> list[EmbeddingRecord]:
        """Delete every record of a workspace and return the deleted rows."""
        return await self._delete_where(EmbeddingRecord.workspace_id == workspace_id)

    async def count_records(self, workspace_id: str) -> int:
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(EmbeddingRecord)
                .where(EmbeddingRecord.workspace_id == workspace_id)
            )
            return int(result.scalar_one())

    async def count_documents(self, workspace_id: str) -> int:
        """Return the number of distinct document titles in the workspace."""
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(
                select(func.count(func.distinct(EmbeddingRecord.document_title))).where(
                    EmbeddingRecord.workspace_id == workspace_id
                )
            )
            return int(result.scalar_one())

    async def latest_record(self, workspace_id: str) -> EmbeddingRecord | None:
        """Return the most recently modified record of the workspace."""
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(
                select(EmbeddingRecord)
                .where(EmbeddingRecord.workspace_id == workspace_id)
                .order_by(EmbeddingRecord.modified.desc())  # type: ignore[attr-defined]
                .limit(1)
            )
            return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Status rows
    # ------------------------------------------------------------------

    async def get_status(self, workspace_id: str) -> EmbeddingStatusRecord | None:
        factory = await self._ensure_db()
        async with factory() as session:
            return await session.get(EmbeddingStatusRecord, workspace_id)

    async def save_status(self, status: EmbeddingStatusRecord) -> EmbeddingStatusRecord:
        """Insert or replace the status row of ``status.workspace_id``."""
        factory = await self._ensure_db()
        async with factory() as session:
            merged = await session.merge(status)
            await session.commit()
            return merged

    async def delete_status(self, workspace_id: str) -> bool:
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(
                sa_delete(EmbeddingStatusRecord).where(
                    EmbeddingStatusRecord.workspace_id == workspace_id  # type: ignore[arg-type]
                )
            )
            await session.commit()
            return (result.rowcount or 0) > 0  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _delete_where(self, *conditions: object) -> list[EmbeddingRecord]:
        factory = await self._ensure_db()
        async with factory() as session:
            result = await session.execute(select(EmbeddingRecord).where(*conditions))
            records = list(result.scalars().all())
            for record in records:
                await session.delete(record)
            if records:
                await session.commit()
            return records

