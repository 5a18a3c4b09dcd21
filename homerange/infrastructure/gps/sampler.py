"""Position sampler: one fix, one distance, one report."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional

from ...core.lifecycle import LifecycleTracker
from ...core.permissions import PermissionGate
from ...domain.models import Coordinate, DistanceReport, PermissionState, isoformat_utc
from .distance import calculate_distance
from .gpsd_client import LocationProvider, PositionError, PositionErrorCode, PositionOptions

if TYPE_CHECKING:
    from ..collector.client import Reporter

logger = logging.getLogger(__name__)


class PositionSampler:
    """
    Takes a single position fix and reports its distance from the reference point.

    Every call to :meth:`sample` is self-contained, so overlapping calls from
    different triggers are fine. The only state kept across calls is the last
    computed distance (for display) and a few counters; the sampler is their
    only writer.

    Usage:
        sampler = PositionSampler(gate, provider, reporter, tracker, reference)
        report = await sampler.sample()
        if report:
            print(f"{sampler.last_distance:.2f} m")
    """

    def __init__(
        self,
        gate: PermissionGate,
        provider: LocationProvider,
        reporter: Reporter,
        tracker: LifecycleTracker,
        reference: Coordinate,
        options: PositionOptions | None = None,
    ) -> None:
        self.gate = gate
        self.provider = provider
        self.reporter = reporter
        self.tracker = tracker
        self.reference = reference
        self.options = options or PositionOptions()
        self._last_report: Optional[DistanceReport] = None
        self.sample_count = 0
        self.failure_count = 0

    @property
    def last_report(self) -> Optional[DistanceReport]:
        return self._last_report

    @property
    def last_distance(self) -> Optional[float]:
        """Most recently computed distance in meters, None before the first fix."""
        return self._last_report.distance_meters if self._last_report else None

    async def sample(self) -> Optional[DistanceReport]:
        """
        Request one fix and report the distance.

        Returns:
            The report handed to the reporter, or None when permission is
            missing or no fix could be obtained. Never raises.
        """
        started_at = datetime.now(UTC)
        timestamp = isoformat_utc(started_at)
        self.sample_count += 1

        if await self.gate.check() != PermissionState.GRANTED:
            self.failure_count += 1
            logger.warning("[%s] Error: location permission not granted, skipping sample", timestamp)
            return None

        try:
            async with asyncio.timeout(self.options.timeout_s):
                fix = await self.provider.get_current_position(self.options)
        except TimeoutError:
            self.failure_count += 1
            logger.error(
                "[%s] Error: %s",
                timestamp,
                PositionError(PositionErrorCode.TIMEOUT, f"no fix within {self.options.timeout_ms} ms"),
            )
            return None
        except PositionError as e:
            self.failure_count += 1
            logger.error("[%s] Error: %s", timestamp, e)
            return None
        except Exception as e:
            self.failure_count += 1
            logger.error("[%s] Error: unexpected location failure: %s", timestamp, e)
            return None

        logger.info("[%s] Latitude: %s, Longitude: %s", timestamp, fix.latitude, fix.longitude)

        distance = calculate_distance(fix.coordinate, self.reference)
        logger.info("[%s] Calculated Distance: %s meters", timestamp, distance)

        report = DistanceReport(
            distance_meters=distance,
            timestamp=started_at,
            lifecycle_state=self.tracker.current(),
        )
        self._last_report = report

        self.reporter.report(report.distance_meters, report.lifecycle_state, timestamp)
        return report
