"""
Background Fetch
================

Periodic background task capability. The host scheduler invokes a handler
with a task id at most every ``minimum_fetch_interval`` minutes, and the
handler must call ``finish(task_id)`` exactly once per invocation.

``AsyncioBackgroundFetch`` runs the schedule inside the service process.
Outside the process (after the service exits, or on boot) the same work is
done by the ``homerange headless`` command, run from a systemd timer or cron.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

MINIMUM_FETCH_INTERVAL_MINUTES = 15

FetchHandler = Callable[[str], Awaitable[None]]
ErrorHandler = Callable[[Exception], None]


@dataclass(frozen=True)
class BackgroundFetchConfig:
    minimum_fetch_interval: int = MINIMUM_FETCH_INTERVAL_MINUTES  # minutes
    stop_on_terminate: bool = False
    start_on_boot: bool = True
    enable_headless: bool = True


class BackgroundFetchStatus(str, Enum):
    AVAILABLE = "available"
    DENIED = "denied"


class BackgroundScheduler(Protocol):
    """Host capability for periodic background work."""

    def configure(
        self,
        config: BackgroundFetchConfig,
        handler: FetchHandler,
        on_error: ErrorHandler,
    ) -> BackgroundFetchStatus: ...

    def finish(self, task_id: str) -> None: ...


class AsyncioBackgroundFetch:
    """
    In-process background fetch scheduler.

    Usage:
        fetch = AsyncioBackgroundFetch()
        fetch.configure(BackgroundFetchConfig(), handler, on_error)
        ...
        fetch.stop()
    """

    def __init__(self, interval_override_s: float | None = None) -> None:
        # interval_override_s bypasses the 15 minute floor (tests, dry runs)
        self._interval_override = interval_override_s
        self._handler: FetchHandler | None = None
        self._on_error: ErrorHandler | None = None
        self._config: BackgroundFetchConfig | None = None
        self._task: asyncio.Task[None] | None = None
        self._unfinished: set[str] = set()
        self._inflight: set[asyncio.Task[None]] = set()
        self.started_count = 0
        self.finished_count = 0

    @property
    def config(self) -> BackgroundFetchConfig | None:
        return self._config

    @property
    def unfinished(self) -> frozenset[str]:
        """Task ids handed to the handler that have not been finished yet."""
        return frozenset(self._unfinished)

    @property
    def interval_s(self) -> float:
        if self._interval_override is not None:
            return self._interval_override
        minutes = self._config.minimum_fetch_interval if self._config else MINIMUM_FETCH_INTERVAL_MINUTES
        return minutes * 60.0

    def configure(
        self,
        config: BackgroundFetchConfig,
        handler: FetchHandler,
        on_error: ErrorHandler,
    ) -> BackgroundFetchStatus:
        if config.minimum_fetch_interval < MINIMUM_FETCH_INTERVAL_MINUTES:
            logger.warning(
                "minimum_fetch_interval %d below platform floor, using %d minutes",
                config.minimum_fetch_interval,
                MINIMUM_FETCH_INTERVAL_MINUTES,
            )
            config = BackgroundFetchConfig(
                minimum_fetch_interval=MINIMUM_FETCH_INTERVAL_MINUTES,
                stop_on_terminate=config.stop_on_terminate,
                start_on_boot=config.start_on_boot,
                enable_headless=config.enable_headless,
            )

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            on_error(e)
            return BackgroundFetchStatus.DENIED

        if self._task is not None:
            logger.info("Reconfiguring background fetch")
            self._task.cancel()

        self._config = config
        self._handler = handler
        self._on_error = on_error
        self._task = loop.create_task(self._run(), name="background-fetch")
        logger.info(
            "Background fetch configured: every %.0fs, stop_on_terminate=%s, start_on_boot=%s, headless=%s",
            self.interval_s,
            config.stop_on_terminate,
            config.start_on_boot,
            config.enable_headless,
        )
        return BackgroundFetchStatus.AVAILABLE

    def fire(self) -> str:
        """Invoke the handler now with a fresh task id."""
        if self._handler is None:
            raise RuntimeError("background fetch is not configured")
        task_id = f"homerange-fetch-{uuid.uuid4().hex[:8]}"
        self._unfinished.add(task_id)
        self.started_count += 1
        task = asyncio.get_running_loop().create_task(self._invoke(self._handler, task_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task_id

    def finish(self, task_id: str) -> None:
        if task_id not in self._unfinished:
            logger.warning("finish() for unknown or finished task %s", task_id)
            return
        self._unfinished.discard(task_id)
        self.finished_count += 1

    async def drain(self) -> None:
        """Wait for running handler invocations."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def stop(self) -> None:
        """Stop scheduling further invocations."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.fire()

    async def _invoke(self, handler: FetchHandler, task_id: str) -> None:
        try:
            await handler(task_id)
        except Exception as e:
            if self._on_error is not None:
                self._on_error(e)
            else:
                logger.error("Background fetch handler error: %s", e)
