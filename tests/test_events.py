"""Tests for typed event channels."""

from __future__ import annotations

import pytest

from journify_storage.events import AuthChanged, DataChanged, EventBus, EventChannel


class TestEventChannel:
    """Tests for EventChannel."""

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self) -> None:
        """Test that plain and coroutine listeners both receive events."""
        channel: EventChannel[DataChanged] = EventChannel("data")
        received: list[str] = []

        def on_sync(event: DataChanged) -> None:
            received.append(f"sync:{event.action}")

        async def on_async(event: DataChanged) -> None:
            received.append(f"async:{event.action}")

        channel.subscribe(on_sync)
        channel.subscribe(on_async)

        await channel.publish(DataChanged("moodEntry", "save"))

        assert received == ["sync:save", "async:save"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        """Test that the returned callable removes the listener."""
        channel: EventChannel[AuthChanged] = EventChannel("auth")
        received: list[AuthChanged] = []

        unsubscribe = channel.subscribe(received.append)
        assert channel.listener_count == 1

        unsubscribe()
        unsubscribe()  # second call is harmless
        await channel.publish(AuthChanged(False))

        assert received == []
        assert channel.listener_count == 0

    @pytest.mark.asyncio
    async def test_failing_listener_skipped(self) -> None:
        """Test that a raising listener does not stop delivery to the others."""
        channel: EventChannel[AuthChanged] = EventChannel("auth")
        received: list[AuthChanged] = []

        def broken(event: AuthChanged) -> None:
            raise ValueError("listener bug")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        await channel.publish(AuthChanged(True, {"id": "user_1"}))

        assert received == [AuthChanged(True, {"id": "user_1"})]

    @pytest.mark.asyncio
    async def test_publish_without_listeners(self) -> None:
        """Test that publishing with nobody listening is fine."""
        await EventChannel("empty").publish(object())


class TestEventBus:
    """Tests for EventBus."""

    def test_channels_are_independent(self) -> None:
        """Test that each bus has its own channel instances."""
        first = EventBus()
        second = EventBus()

        first.auth_changed.subscribe(lambda event: None)

        assert first.auth_changed.listener_count == 1
        assert second.auth_changed.listener_count == 0
        assert first.data_changed is not first.storage_changed
