"""
Lifecycle and Event Bus Tests
=============================
"""

import pytest

from homerange.core.events import EventBus, EventType
from homerange.core.lifecycle import EventBusLifecycleSource, LifecycleTracker
from homerange.domain.models import LifecycleState


class TestLifecycleTracker:

    def test_default_is_active(self):
        assert LifecycleTracker().current() == LifecycleState.ACTIVE

    def test_update(self):
        tracker = LifecycleTracker()
        tracker.update(LifecycleState.BACKGROUND)
        assert tracker.current() == LifecycleState.BACKGROUND
        tracker.update(LifecycleState.INACTIVE)
        assert tracker.current() == LifecycleState.INACTIVE


class TestEventBus:

    @pytest.mark.asyncio
    async def test_emit_sync_dispatches_in_order(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event.data)

        bus.subscribe(EventType.APP_STATE_CHANGED, handler)
        await bus.start()
        bus.emit_sync(EventType.APP_STATE_CHANGED, data="first")
        bus.emit_sync(EventType.APP_STATE_CHANGED, data="second")
        assert await bus.drain() is True
        await bus.stop()

        assert received == ["first", "second"]

    @pytest.mark.asyncio
    async def test_handler_error_is_isolated(self, caplog):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def healthy(event):
            received.append(event.type)

        bus.subscribe(EventType.APP_STATE_CHANGED, broken)
        bus.subscribe(EventType.APP_STATE_CHANGED, healthy)

        await bus.start()
        bus.emit_sync(EventType.APP_STATE_CHANGED)
        await bus.stop()

        assert received == [EventType.APP_STATE_CHANGED]
        assert "Handler error for APP_STATE_CHANGED" in caplog.text

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        calls = []

        async def handler(event):
            calls.append(event)

        bus.subscribe(EventType.APP_STATE_CHANGED, handler)
        assert bus.unsubscribe(EventType.APP_STATE_CHANGED, handler) is True
        assert bus.unsubscribe(EventType.APP_STATE_CHANGED, handler) is False

        await bus.start()
        bus.emit_sync(EventType.APP_STATE_CHANGED)
        await bus.stop()

        assert calls == []

    @pytest.mark.asyncio
    async def test_drain_before_start(self):
        bus = EventBus()
        assert await bus.drain() is True
        bus.emit_sync(EventType.APP_STATE_CHANGED)
        assert await bus.drain() is False


class TestEventBusLifecycleSource:

    @pytest.mark.asyncio
    async def test_transitions_reach_listener(self):
        bus = EventBus()
        source = EventBusLifecycleSource(bus)
        tracker = LifecycleTracker()

        async def listener(state):
            tracker.update(state)

        source.subscribe(listener)
        await bus.start()

        source.publish(LifecycleState.BACKGROUND)
        await bus.drain()
        assert tracker.current() == LifecycleState.BACKGROUND

        source.publish(LifecycleState.ACTIVE)
        source.publish(LifecycleState.INACTIVE)
        await bus.drain()
        assert tracker.current() == LifecycleState.INACTIVE

        await bus.stop()

    @pytest.mark.asyncio
    async def test_removed_subscription_stops_updates(self):
        bus = EventBus()
        source = EventBusLifecycleSource(bus)
        tracker = LifecycleTracker()

        async def listener(state):
            tracker.update(state)

        sub = source.subscribe(listener)
        await bus.start()
        sub.remove()
        sub.remove()  # idempotent

        source.publish(LifecycleState.BACKGROUND)
        await bus.drain()
        await bus.stop()

        assert tracker.current() == LifecycleState.ACTIVE
