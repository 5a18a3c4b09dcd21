"""
Homerange Event Bus - Async Pub/Sub Event System
================================================

Carries application state changes from sync contexts (signal handlers,
platform callbacks) to the async listeners that track them.

Features:
- Events are queued and dispatched in order on the running loop
- Handler errors are isolated and logged
- drain() waits until everything queued has been dispatched

Usage:
    bus = EventBus()
    bus.subscribe(EventType.APP_STATE_CHANGED, handle_state)
    await bus.start()

    bus.emit_sync(EventType.APP_STATE_CHANGED, data=LifecycleState.BACKGROUND)
    await bus.drain()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Coroutine, TypeAlias

logger = logging.getLogger(__name__)

AsyncHandler: TypeAlias = Callable[["Event"], Coroutine[Any, Any, None]]


class EventType(Enum):
    """All event types in the system."""

    APP_STATE_CHANGED = auto()


@dataclass
class Event:
    """Immutable event with metadata."""

    type: EventType
    data: Any = None
    timestamp: float = field(default_factory=time.time)
    source: str = "system"


class EventBus:
    """Async event bus with pub/sub pattern."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[AsyncHandler]] = {}
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    def subscribe(self, event_type: EventType, handler: AsyncHandler) -> None:
        """Subscribe an async handler to an event type."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            "Subscribed to %s: %s",
            event_type.name,
            getattr(handler, "__name__", repr(handler)),
        )

    def unsubscribe(self, event_type: EventType, handler: AsyncHandler) -> bool:
        """Remove a handler. Returns True if found."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit_sync(
        self,
        event_type: EventType,
        data: Any = None,
        source: str = "system",
    ) -> Event:
        """Queue an event from a sync context (signal handlers, callbacks)."""
        event = Event(type=event_type, data=data, source=source)
        self._queue.put_nowait(event)
        return event

    async def start(self) -> None:
        """Start the event processing loop."""
        if self._task is not None:
            return

        self._task = asyncio.create_task(self._process_loop())
        logger.info("Event bus started")

    async def drain(self, timeout: float = 5.0) -> bool:
        """Wait until every queued event has been dispatched."""
        if not self._task:
            return self._queue.empty()
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Event queue drain timeout")
            return False
        return True

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop the event bus after draining queued events."""
        if self._task:
            if not await self.drain(timeout):
                logger.warning("Forcing event bus stop")

            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Event bus stopped")

    async def _process_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        handlers = list(self._handlers.get(event.type, []))
        if not handlers:
            logger.debug("No handlers for %s", event.type.name)
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for %s: %s - %s",
                    event.type.name,
                    getattr(handler, "__name__", repr(handler)),
                    e,
                )
