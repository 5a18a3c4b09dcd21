"""Application lifecycle tracking.

The tracker holds the single current lifecycle value. Only the lifecycle
listener registered by the scheduler writes it; samplers read it when they
build a report.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from ..domain.models import LifecycleState
from .events import Event, EventBus, EventType

logger = logging.getLogger(__name__)

LifecycleListener = Callable[[LifecycleState], Awaitable[None]]


class LifecycleTracker:
    """Current foreground/background state of the host application."""

    def __init__(self, initial: LifecycleState = LifecycleState.ACTIVE) -> None:
        self._state = initial

    def current(self) -> LifecycleState:
        return self._state

    def update(self, state: LifecycleState) -> None:
        if state != self._state:
            logger.info("AppState changed: %s -> %s", self._state.value, state.value)
        self._state = state


class Subscription(Protocol):
    def remove(self) -> None: ...


class LifecycleSource(Protocol):
    """Host capability delivering application state changes."""

    def subscribe(self, listener: LifecycleListener) -> Subscription: ...


class _BusSubscription:
    def __init__(self, bus: EventBus, handler: Callable[[Event], Awaitable[None]]) -> None:
        self._bus = bus
        self._handler = handler
        self.active = True

    def remove(self) -> None:
        if not self.active:
            return
        self._bus.unsubscribe(EventType.APP_STATE_CHANGED, self._handler)  # type: ignore[arg-type]
        self.active = False


class EventBusLifecycleSource:
    """
    Lifecycle capability backed by the event bus.

    Usage:
        source = EventBusLifecycleSource(bus)
        sub = source.subscribe(listener)
        source.publish(LifecycleState.BACKGROUND)
        sub.remove()
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    def subscribe(self, listener: LifecycleListener) -> _BusSubscription:
        async def _on_state_change(event: Event) -> None:
            await listener(LifecycleState(event.data))

        self._bus.subscribe(EventType.APP_STATE_CHANGED, _on_state_change)
        return _BusSubscription(self._bus, _on_state_change)

    def publish(self, state: LifecycleState) -> None:
        """Report a transition from a sync context such as a signal handler."""
        self._bus.emit_sync(EventType.APP_STATE_CHANGED, data=state, source="lifecycle")
