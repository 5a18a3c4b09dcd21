"""Sampling scheduler: interval timer, background fetch and lifecycle listener."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Optional

from ...core.lifecycle import LifecycleSource, LifecycleTracker, Subscription
from ...domain.models import DistanceReport, LifecycleState
from ..gps.sampler import PositionSampler
from .background import BackgroundFetchConfig, BackgroundFetchStatus, BackgroundScheduler
from .timer import IntervalTimer

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], Awaitable[Any]]], IntervalTimer]


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Scheduler:
    """
    Drives the position sampler from three triggers.

    - an interval timer (default every 10 s), running while the service runs
    - a periodic background fetch (at least every 15 minutes) whose
      registration outlives :meth:`stop`
    - application state changes, which only update the lifecycle tracker

    Usage:
        scheduler = Scheduler(sampler, background, lifecycle_source, tracker)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        sampler: PositionSampler,
        background: BackgroundScheduler,
        lifecycle_source: LifecycleSource,
        tracker: LifecycleTracker,
        interval_ms: int = 10_000,
        background_config: BackgroundFetchConfig | None = None,
        timer_factory: TimerFactory = IntervalTimer,
    ) -> None:
        self.sampler = sampler
        self.background = background
        self.lifecycle_source = lifecycle_source
        self.tracker = tracker
        self.interval_ms = interval_ms
        self.background_config = background_config or BackgroundFetchConfig()
        self._timer_factory = timer_factory
        self._timer: Optional[IntervalTimer] = None
        self._subscription: Optional[Subscription] = None
        self._background_status: Optional[BackgroundFetchStatus] = None
        self._state = SchedulerState.STOPPED

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def background_status(self) -> Optional[BackgroundFetchStatus]:
        return self._background_status

    def start(self) -> None:
        """Register all triggers. Must be called from a running event loop."""
        if self._state == SchedulerState.RUNNING:
            logger.warning("Scheduler already running, ignoring start()")
            return

        self._timer = self._timer_factory(self.interval_ms / 1000.0, self._on_tick)
        self._timer.start()

        # Configured once per process; stop() leaves it registered
        if self._background_status is None:
            self._background_status = self.background.configure(
                self.background_config,
                self._on_background_fetch,
                self._on_background_error,
            )

        self._subscription = self.lifecycle_source.subscribe(self._on_app_state_change)
        self._state = SchedulerState.RUNNING
        logger.info("Scheduler started (interval %d ms)", self.interval_ms)

    def stop(self) -> None:
        """Remove the lifecycle listener and cancel the interval timer."""
        if self._state == SchedulerState.STOPPED:
            return

        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self._state = SchedulerState.STOPPED
        logger.info("Scheduler stopped")

    async def sample_now(self) -> Optional[DistanceReport]:
        """Manual trigger."""
        return await self.sampler.sample()

    async def _on_tick(self) -> None:
        await self.sampler.sample()

    async def _on_background_fetch(self, task_id: str) -> None:
        logger.info("[BackgroundFetch] taskId: %s", task_id)
        try:
            await self.sampler.sample()
        except Exception as e:
            logger.error("[BackgroundFetch] sample failed: %s", e)
        finally:
            self.background.finish(task_id)

    def _on_background_error(self, error: Exception) -> None:
        logger.error("[BackgroundFetch] configure error: %s", error)

    async def _on_app_state_change(self, state: LifecycleState) -> None:
        self.tracker.update(state)
