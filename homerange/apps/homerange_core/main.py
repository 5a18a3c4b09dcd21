from __future__ import annotations

import asyncio
import logging
import signal
import uuid
from dataclasses import dataclass
from typing import Optional

from ...config import HomerangeConfig
from ...core.events import EventBus
from ...core.lifecycle import EventBusLifecycleSource, LifecycleTracker
from ...core.permissions import PermissionGate, StaticPermissionProvider
from ...domain.models import DistanceReport, LifecycleState, PermissionState
from ...infrastructure.collector.client import CollectorConfig, Reporter
from ...infrastructure.gps.gpsd_client import (
    GpsdConfig,
    GpsdLocationProvider,
    LocationProvider,
    MockLocationProvider,
    PositionOptions,
)
from ...infrastructure.gps.sampler import PositionSampler
from ...infrastructure.scheduling.background import AsyncioBackgroundFetch, BackgroundFetchConfig
from ...infrastructure.scheduling.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class Service:
    cfg: HomerangeConfig
    bus: EventBus
    tracker: LifecycleTracker
    lifecycle: EventBusLifecycleSource
    gate: PermissionGate
    provider: LocationProvider
    reporter: Reporter
    sampler: PositionSampler
    background: AsyncioBackgroundFetch
    scheduler: Scheduler


def build_location_provider(cfg: HomerangeConfig, mock: bool = False) -> LocationProvider:
    if mock or cfg.location.source == "mock":
        return MockLocationProvider(start_lat=cfg.location.mock_lat, start_lon=cfg.location.mock_lon)
    return GpsdLocationProvider(GpsdConfig(host=cfg.location.gpsd_host, port=cfg.location.gpsd_port))


def _position_options(cfg: HomerangeConfig) -> PositionOptions:
    return PositionOptions(
        enable_high_accuracy=cfg.location.enable_high_accuracy,
        timeout_ms=cfg.location.timeout_ms,
        maximum_age_ms=cfg.location.maximum_age_ms,
    )


def _build_gate(cfg: HomerangeConfig) -> PermissionGate:
    provider = StaticPermissionProvider(
        initial=cfg.permission.initial,
        grant_on_request=cfg.permission.grant_on_request,
    )
    return PermissionGate(provider, cfg.platform)


def _build_reporter(cfg: HomerangeConfig) -> Reporter:
    return Reporter(CollectorConfig(url=cfg.collector.url, timeout_s=cfg.collector.timeout_s))


def build_service(
    cfg: HomerangeConfig,
    mock: bool = False,
    provider: LocationProvider | None = None,
    background: AsyncioBackgroundFetch | None = None,
) -> Service:
    """Wire every component for the foreground service."""
    bus = EventBus()
    tracker = LifecycleTracker(cfg.scheduler.initial_state)
    lifecycle = EventBusLifecycleSource(bus)
    gate = _build_gate(cfg)
    provider = provider or build_location_provider(cfg, mock=mock)
    reporter = _build_reporter(cfg)
    sampler = PositionSampler(
        gate=gate,
        provider=provider,
        reporter=reporter,
        tracker=tracker,
        reference=cfg.reference.to_coordinate(),
        options=_position_options(cfg),
    )
    background = background or AsyncioBackgroundFetch()
    bg = cfg.scheduler.background
    scheduler = Scheduler(
        sampler=sampler,
        background=background,
        lifecycle_source=lifecycle,
        tracker=tracker,
        interval_ms=cfg.scheduler.interval_ms,
        background_config=BackgroundFetchConfig(
            minimum_fetch_interval=bg.minimum_fetch_interval,
            stop_on_terminate=bg.stop_on_terminate,
            start_on_boot=bg.start_on_boot,
            enable_headless=bg.enable_headless,
        ),
    )
    return Service(
        cfg=cfg,
        bus=bus,
        tracker=tracker,
        lifecycle=lifecycle,
        gate=gate,
        provider=provider,
        reporter=reporter,
        sampler=sampler,
        background=background,
        scheduler=scheduler,
    )


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
    lifecycle: EventBusLifecycleSource,
) -> list[int]:
    """SIGINT/SIGTERM stop the service; SIGUSR1/SIGUSR2 move it to background/active."""
    handlers = {
        signal.SIGINT: stop_event.set,
        signal.SIGTERM: stop_event.set,
    }
    if hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = lambda: lifecycle.publish(LifecycleState.BACKGROUND)
        handlers[signal.SIGUSR2] = lambda: lifecycle.publish(LifecycleState.ACTIVE)

    installed: list[int] = []
    for sig, callback in handlers.items():
        try:
            loop.add_signal_handler(sig, callback)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal support
            logger.debug("Signal %s not supported on this platform", sig)
    return installed


async def run_service(
    cfg: HomerangeConfig,
    runtime_seconds: float | None = None,
    mock: bool = False,
    install_signals: bool = True,
    service: Service | None = None,
) -> Service:
    """
    Run the sampling service until a stop signal or ``runtime_seconds``.

    Startup asks for location permission and, when granted, samples once
    right away. A denied permission does not stop the service: every trigger
    re-checks and skips sampling until permission is granted.
    """
    service = service or build_service(cfg, mock=mock)
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    installed = _install_signal_handlers(loop, stop_event, service.lifecycle) if install_signals else []

    await service.bus.start()
    try:
        state = await service.gate.ensure_location_permission()
        if state == PermissionState.GRANTED:
            await service.sampler.sample()
        else:
            logger.warning("Location permission %s, samples will be skipped", state.value)

        service.scheduler.start()
        logger.info("Service ready")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=runtime_seconds)
        except asyncio.TimeoutError:
            logger.info("Runtime limit of %.0fs reached", runtime_seconds)
    finally:
        service.lifecycle.publish(LifecycleState.INACTIVE)
        await service.bus.drain()
        service.scheduler.stop()

        if service.scheduler.background_config.stop_on_terminate:
            logger.info("Background fetch stopped with the service")
        else:
            logger.info("Background fetch continues through the headless entry point")
        service.background.stop()
        await service.background.drain()

        await service.reporter.drain()
        await service.reporter.close()
        await service.bus.stop()
        for sig in installed:
            loop.remove_signal_handler(sig)

    return service


async def sample_once(cfg: HomerangeConfig, mock: bool = False) -> Optional[DistanceReport]:
    """The "sample now" action: ask for permission, take one sample, deliver it."""
    service = build_service(cfg, mock=mock)
    try:
        if await service.gate.ensure_location_permission() != PermissionState.GRANTED:
            return None
        return await service.sampler.sample()
    finally:
        await service.reporter.drain()
        await service.reporter.close()


async def run_headless_task(
    cfg: HomerangeConfig,
    task_id: str | None = None,
    mock: bool = False,
    provider: LocationProvider | None = None,
    reporter: Reporter | None = None,
) -> Optional[DistanceReport]:
    """
    Background fetch entry point that runs without the foreground service.

    Builds only what one sample needs (no event bus, no scheduler) and
    always logs the finish of the task, whatever the sample outcome.
    """
    task_id = task_id or f"homerange-headless-{uuid.uuid4().hex[:8]}"
    if not cfg.scheduler.background.enable_headless:
        logger.warning("[BackgroundFetch HeadlessTask] headless disabled, skipping %s", task_id)
        return None

    logger.info("[BackgroundFetch HeadlessTask] start: %s", task_id)
    tracker = LifecycleTracker(LifecycleState.BACKGROUND)
    gate = _build_gate(cfg)
    reporter = reporter or _build_reporter(cfg)
    sampler = PositionSampler(
        gate=gate,
        provider=provider or build_location_provider(cfg, mock=mock),
        reporter=reporter,
        tracker=tracker,
        reference=cfg.reference.to_coordinate(),
        options=_position_options(cfg),
    )
    try:
        # The static provider answers from config; no prompt is shown
        await gate.ensure_location_permission()
        return await sampler.sample()
    except Exception as e:
        logger.error("[BackgroundFetch HeadlessTask] %s failed: %s", task_id, e)
        return None
    finally:
        await reporter.drain()
        await reporter.close()
        logger.info("[BackgroundFetch HeadlessTask] finish: %s", task_id)
