"""StatusTracker: durable per-workspace status with live subscriptions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from wikiembed.chunking import utcnow
from wikiembed.models.status import EmbeddingStatusRecord
from wikiembed.types import EmbeddingState, EmbeddingStatus

if TYPE_CHECKING:
    from wikiembed.storage.metadata import MetadataStore

logger = logging.getLogger(__name__)

_CLOSED = object()

_UPDATABLE_FIELDS = frozenset({"status", "progress", "error", "last_completed"})


class StatusSubscription:
    """Async iterator over the status snapshots of one workspace.

    The first item is the status at subscription time, followed by every
    later update.  Iteration ends when the channel is closed or when
    :meth:`close` detaches this listener.
    """

    def __init__(self, channel: StatusChannel, initial: EmbeddingStatus) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._queue.put_nowait(initial)
        self._closed = False

    @property
    def workspace_id(self) -> str:
        return self._channel.workspace_id

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, item: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def close(self) -> None:
        """Detach from the channel; pending iteration finishes."""
        if self._closed:
            return
        self._channel.detach(self)
        self._queue.put_nowait(_CLOSED)
        self._closed = True

    def __aiter__(self) -> StatusSubscription:
        return self

    async def __anext__(self) -> EmbeddingStatus:
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> StatusSubscription:
        return self

    async def __aexit__(self, *args: object) -> None:
        self.close()


class StatusChannel:
    """Latest status of a workspace plus the listeners attached to it."""

    def __init__(self, workspace_id: str) -> None:
        self.workspace_id = workspace_id
        self.latest: EmbeddingStatus | None = None
        self._listeners: list[StatusSubscription] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def attach(self, initial: EmbeddingStatus) -> StatusSubscription:
        subscription = StatusSubscription(self, initial)
        self._listeners.append(subscription)
        return subscription

    def detach(self, subscription: StatusSubscription) -> None:
        if subscription in self._listeners:
            self._listeners.remove(subscription)

    def publish(self, status: EmbeddingStatus) -> None:
        self.latest = status
        for listener in list(self._listeners):
            listener._push(status)

    def close(self) -> None:
        for listener in list(self._listeners):
            listener.close()
        self._listeners.clear()


class StatusTracker:
    """Persists and broadcasts the indexing status of each workspace.

    Channels are created on first subscription or update and live until
    :meth:`close_channel` or :meth:`close_all`; they never expire on their
    own.  Status bookkeeping never fails the caller: persistence errors
    are logged and the updated snapshot is still broadcast.
    """

    def __init__(self, store: MetadataStore) -> None:
        self._store = store
        self._channels: dict[str, StatusChannel] = {}

    def _channel(self, workspace_id: str) -> StatusChannel:
        channel = self._channels.get(workspace_id)
        if channel is None:
            channel = StatusChannel(workspace_id)
            self._channels[workspace_id] = channel
        return channel

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    async def get(self, workspace_id: str) -> EmbeddingStatus:
        """Return the persisted status, creating an ``idle`` one if missing."""
        try:
            record = await self._store.get_status(workspace_id)
        except Exception:
            logger.warning("Failed to read status of %s", workspace_id, exc_info=True)
            channel = self._channels.get(workspace_id)
            if channel is not None and channel.latest is not None:
                return channel.latest
            return EmbeddingStatus.default(workspace_id)

        if record is not None:
            return EmbeddingStatus.from_record(record)

        status = EmbeddingStatus.default(workspace_id)
        try:
            await self._store.save_status(_to_record(status))
        except Exception:
            logger.warning("Failed to save default status of %s", workspace_id, exc_info=True)
        return status

    async def update(self, workspace_id: str, **changes: Any) -> EmbeddingStatus:
        """Merge *changes* into the current status, persist and broadcast it.

        Accepted fields are ``status``, ``progress``, ``error`` and
        ``last_completed``.  ``last_updated`` is always set to now.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown status fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        if "status" in changes:
            changes["status"] = EmbeddingState(changes["status"])

        channel = self._channel(workspace_id)
        current = channel.latest or await self.get(workspace_id)
        status = replace(current, **changes, last_updated=utcnow())

        try:
            await self._store.save_status(_to_record(status))
        except Exception:
            logger.warning("Failed to persist status of %s", workspace_id, exc_info=True)

        channel.publish(status)
        return status

    async def subscribe(self, workspace_id: str) -> StatusSubscription:
        """Return a subscription whose first item is the current status."""
        current = await self.get(workspace_id)
        channel = self._channel(workspace_id)
        return channel.attach(channel.latest or current)

    async def delete(self, workspace_id: str) -> None:
        """Remove the persisted status row and close the live channel."""
        try:
            await self._store.delete_status(workspace_id)
        finally:
            self.close_channel(workspace_id)

    def close_channel(self, workspace_id: str) -> None:
        """End every subscription of *workspace_id* and forget its channel."""
        channel = self._channels.pop(workspace_id, None)
        if channel is not None:
            channel.close()

    def close_all(self) -> None:
        for workspace_id in list(self._channels):
            self.close_channel(workspace_id)


def _to_record(status: EmbeddingStatus) -> EmbeddingStatusRecord:
    return EmbeddingStatusRecord(
        workspace_id=status.workspace_id,
        status=status.status.value,
        progress=status.progress.as_dict() if status.progress is not None else None,
        error=status.error,
        last_updated=status.last_updated or utcnow(),
        last_completed=status.last_completed,
    )
