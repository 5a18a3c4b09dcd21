"""Scheduling - interval timer, background fetch and the sampling scheduler."""

from .background import (
    AsyncioBackgroundFetch,
    BackgroundFetchConfig,
    BackgroundFetchStatus,
    BackgroundScheduler,
)
from .scheduler import Scheduler, SchedulerState
from .timer import IntervalTimer

__all__ = [
    "AsyncioBackgroundFetch",
    "BackgroundFetchConfig",
    "BackgroundFetchStatus",
    "BackgroundScheduler",
    "IntervalTimer",
    "Scheduler",
    "SchedulerState",
]
