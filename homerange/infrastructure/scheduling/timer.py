"""Fixed-interval asyncio timer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class IntervalTimer:
    """
    Calls ``callback`` every ``interval_s`` seconds.

    Each tick runs the callback as its own task, so a slow callback never
    delays the next tick and ticks may overlap. Cancelling the timer stops
    future ticks only; callbacks already running finish on their own.
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], Awaitable[Any]],
        name: str = "interval",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s
        self.callback = callback
        self.name = name
        self.ticks = 0
        self._task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"timer-{self.name}")
        logger.debug("Timer %s started (every %.1fs)", self.name, self.interval_s)

    def cancel(self) -> None:
        """Stop ticking. Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Timer %s cancelled after %d ticks", self.name, self.ticks)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.ticks += 1
            task = asyncio.create_task(self._fire())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _fire(self) -> None:
        try:
            await self.callback()
        except Exception as e:
            logger.error("Timer %s callback error: %s", self.name, e)
