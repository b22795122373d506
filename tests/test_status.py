"""Tests for StatusTracker: persistence and live subscriptions."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from wikiembed.status import StatusTracker
from wikiembed.types import EmbeddingProgress, EmbeddingState, EmbeddingStatus

if TYPE_CHECKING:
    from wikiembed.storage.metadata import MetadataStore


class BrokenStore:
    """Metadata store whose status methods always fail."""

    async def get_status(self, workspace_id):
        raise RuntimeError("database is locked")

    async def save_status(self, status):
        raise RuntimeError("database is locked")

    async def delete_status(self, workspace_id):
        raise RuntimeError("database is locked")


class ReadOnlyStore:
    """Metadata store that reads nothing and cannot write."""

    async def get_status(self, workspace_id):
        return None

    async def save_status(self, status):
        raise RuntimeError("disk full")


async def _next(subscription, timeout: float = 1.0) -> EmbeddingStatus:
    return await asyncio.wait_for(subscription.__anext__(), timeout)


# ==================================================================
# get / update
# ==================================================================


class TestGetAndUpdate:
    @pytest.mark.asyncio
    async def test_get_creates_idle_default(
        self, status_tracker: StatusTracker, metadata_store: MetadataStore
    ):
        status = await status_tracker.get("wiki")
        assert status.workspace_id == "wiki"
        assert status.status is EmbeddingState.IDLE
        assert status.progress is None
        assert status.last_updated is not None

        row = await metadata_store.get_status("wiki")
        assert row is not None
        assert row.status == "idle"

    @pytest.mark.asyncio
    async def test_update_merges_and_persists(self, status_tracker: StatusTracker):
        await status_tracker.update(
            "wiki",
            status=EmbeddingState.GENERATING,
            progress=EmbeddingProgress(total=3, completed=0),
        )
        updated = await status_tracker.update(
            "wiki", progress=EmbeddingProgress(total=3, completed=1, current="A")
        )

        assert updated.status is EmbeddingState.GENERATING
        assert updated.progress == EmbeddingProgress(total=3, completed=1, current="A")

        stored = await StatusTracker(status_tracker._store).get("wiki")
        assert stored.status is EmbeddingState.GENERATING
        assert stored.progress == EmbeddingProgress(total=3, completed=1, current="A")

    @pytest.mark.asyncio
    async def test_update_stamps_last_updated(self, status_tracker: StatusTracker):
        before = datetime.now(UTC)
        status = await status_tracker.update("wiki", status="generating")
        assert status.last_updated is not None
        assert status.last_updated >= before

    @pytest.mark.asyncio
    async def test_update_accepts_plain_strings(self, status_tracker: StatusTracker):
        status = await status_tracker.update("wiki", status="completed")
        assert status.status is EmbeddingState.COMPLETED

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, status_tracker: StatusTracker):
        with pytest.raises(ValueError, match="colour"):
            await status_tracker.update("wiki", colour="red")

    @pytest.mark.asyncio
    async def test_persisted_timestamps_are_utc(self, metadata_store: MetadataStore):
        tracker = StatusTracker(metadata_store)
        await tracker.update("wiki", status="completed", last_completed=datetime.now(UTC))

        reloaded = await StatusTracker(metadata_store).get("wiki")

        assert reloaded.last_completed is not None
        assert reloaded.last_completed.tzinfo is not None
        assert reloaded.last_updated is not None
        assert reloaded.last_updated.tzinfo is not None

    @pytest.mark.asyncio
    async def test_read_failure_yields_default(self):
        tracker = StatusTracker(BrokenStore())  # type: ignore[arg-type]
        status = await tracker.get("wiki")
        assert status.status is EmbeddingState.IDLE

    @pytest.mark.asyncio
    async def test_failed_default_save_still_returns_default(self):
        tracker = StatusTracker(ReadOnlyStore())  # type: ignore[arg-type]
        status = await tracker.get("wiki")
        assert status.status is EmbeddingState.IDLE

    @pytest.mark.asyncio
    async def test_update_never_raises_on_persistence_failure(
        self, caplog: pytest.LogCaptureFixture
    ):
        tracker = StatusTracker(BrokenStore())  # type: ignore[arg-type]
        with caplog.at_level("WARNING"):
            status = await tracker.update("wiki", status="generating")
        assert status.status is EmbeddingState.GENERATING
        assert "Failed to persist status" in caplog.text

    @pytest.mark.asyncio
    async def test_update_still_broadcasts_when_persistence_fails(self):
        tracker = StatusTracker(BrokenStore())  # type: ignore[arg-type]
        subscription = await tracker.subscribe("wiki")
        await _next(subscription)

        await tracker.update("wiki", status="error", error="boom")

        received = await _next(subscription)
        assert received.status is EmbeddingState.ERROR
        assert received.error == "boom"


# ==================================================================
# Subscriptions
# ==================================================================


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_first_item_is_current_status(self, status_tracker: StatusTracker):
        await status_tracker.update("wiki", status="completed")
        subscription = await status_tracker.subscribe("wiki")
        first = await _next(subscription)
        assert first.status is EmbeddingState.COMPLETED

    @pytest.mark.asyncio
    async def test_receives_updates_in_order(self, status_tracker: StatusTracker):
        subscription = await status_tracker.subscribe("wiki")
        await status_tracker.update("wiki", status="generating")
        await status_tracker.update(
            "wiki", progress=EmbeddingProgress(total=1, completed=1)
        )
        await status_tracker.update("wiki", status="completed")

        seen = [await _next(subscription) for _ in range(4)]

        assert [s.status for s in seen] == [
            EmbeddingState.IDLE,
            EmbeddingState.GENERATING,
            EmbeddingState.GENERATING,
            EmbeddingState.COMPLETED,
        ]
        assert seen[2].progress == EmbeddingProgress(total=1, completed=1)

    @pytest.mark.asyncio
    async def test_delivered_snapshots_do_not_change(self, status_tracker: StatusTracker):
        subscription = await status_tracker.subscribe("wiki")
        await status_tracker.update("wiki", status="generating")
        first = await _next(subscription)
        second = await _next(subscription)
        await status_tracker.update("wiki", status="completed")
        assert first.status is EmbeddingState.IDLE
        assert second.status is EmbeddingState.GENERATING

    @pytest.mark.asyncio
    async def test_multiple_subscribers(self, status_tracker: StatusTracker):
        one = await status_tracker.subscribe("wiki")
        two = await status_tracker.subscribe("wiki")
        await status_tracker.update("wiki", status="generating")

        for subscription in (one, two):
            await _next(subscription)
            assert (await _next(subscription)).status is EmbeddingState.GENERATING

    @pytest.mark.asyncio
    async def test_workspaces_are_isolated(self, status_tracker: StatusTracker):
        subscription = await status_tracker.subscribe("wiki")
        await status_tracker.update("other", status="generating")
        await status_tracker.update("wiki", status="completed")

        await _next(subscription)
        assert (await _next(subscription)).status is EmbeddingState.COMPLETED

    @pytest.mark.asyncio
    async def test_close_subscription_detaches_one_listener(
        self, status_tracker: StatusTracker
    ):
        one = await status_tracker.subscribe("wiki")
        two = await status_tracker.subscribe("wiki")
        one.close()
        await status_tracker.update("wiki", status="generating")

        assert [s.status async for s in one] == [EmbeddingState.IDLE]
        await _next(two)
        assert (await _next(two)).status is EmbeddingState.GENERATING
        assert one.closed

    @pytest.mark.asyncio
    async def test_close_channel_ends_iteration(self, status_tracker: StatusTracker):
        subscription = await status_tracker.subscribe("wiki")
        await status_tracker.update("wiki", status="generating")
        status_tracker.close_channel("wiki")

        seen = [s.status async for s in subscription]

        assert seen == [EmbeddingState.IDLE, EmbeddingState.GENERATING]
        assert status_tracker.channel_count == 0

    @pytest.mark.asyncio
    async def test_close_all(self, status_tracker: StatusTracker):
        one = await status_tracker.subscribe("a")
        two = await status_tracker.subscribe("b")
        status_tracker.close_all()
        assert len([s async for s in one]) == 1
        assert len([s async for s in two]) == 1
        assert status_tracker.channel_count == 0

    @pytest.mark.asyncio
    async def test_subscription_as_context_manager(self, status_tracker: StatusTracker):
        async with await status_tracker.subscribe("wiki") as subscription:
            first = await _next(subscription)
        assert first.status is EmbeddingState.IDLE
        assert subscription.closed

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_closes_channel(
        self, status_tracker: StatusTracker, metadata_store: MetadataStore
    ):
        await status_tracker.update("wiki", status="completed")
        subscription = await status_tracker.subscribe("wiki")

        await status_tracker.delete("wiki")

        assert await metadata_store.get_status("wiki") is None
        assert [s.status async for s in subscription] == [EmbeddingState.COMPLETED]
        assert status_tracker.channel_count == 0

    @pytest.mark.asyncio
    async def test_channel_outlives_idle_periods(self, status_tracker: StatusTracker):
        await status_tracker.subscribe("wiki")
        await asyncio.sleep(0)
        assert status_tracker.channel_count == 1
