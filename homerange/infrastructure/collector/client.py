"""
Collector Client.
~~~~~~~~~~~~~~~~~

Delivers distance reports to the remote collector endpoint.

Delivery is fire-and-forget and at most once: every report gets one POST,
success and failure are both logged, nothing is queued or retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from ...domain.models import LifecycleState

logger = logging.getLogger(__name__)


@dataclass
class CollectorConfig:
    """Collector endpoint configuration."""

    url: str = "http://localhost:8080/locationdb.php"
    timeout_s: float | None = None  # None = aiohttp default


def format_distance(distance_meters: float) -> str:
    """
    Format a distance the way the collector has always received it.

    Whole numbers carry no fraction (``0``, ``1500``); anything else is the
    shortest repr that round-trips (``25081.87093227403``).
    """
    value = float(distance_meters)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def build_payload(distance_meters: float, timestamp: str) -> dict[str, str]:
    """Build the JSON body the collector expects."""
    return {"distance": f"{timestamp}: Total distance is {format_distance(distance_meters)} meters"}


class Reporter:
    """
    HTTP reporter for the distance collector.

    Example:
        >>> reporter = Reporter(CollectorConfig(url="https://collector/locationdb.php"))
        >>> reporter.report(1234.5, LifecycleState.ACTIVE, "2024-05-01T10:00:00.000Z")
        >>> await reporter.drain()
        >>> await reporter.close()
    """

    def __init__(
        self,
        config: CollectorConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._pending: set[asyncio.Task[bool]] = set()
        self.sent_count = 0
        self.failed_count = 0

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = (
                aiohttp.ClientTimeout(total=self.config.timeout_s)
                if self.config.timeout_s is not None
                else None
            )
            kwargs: dict[str, Any] = {"timeout": timeout} if timeout else {}
            self._session = aiohttp.ClientSession(**kwargs)
            self._owns_session = True
        return self._session

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._pending)

    def report(
        self,
        distance_meters: float,
        lifecycle_state: LifecycleState,
        timestamp: str,
    ) -> asyncio.Task[bool]:
        """
        Schedule delivery of one report and return immediately.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(
            self.deliver(distance_meters, lifecycle_state, timestamp)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(
        self,
        distance_meters: float,
        lifecycle_state: LifecycleState,
        timestamp: str,
    ) -> bool:
        """
        POST one report to the collector.

        Returns:
            True on a 2xx response, False on any failure. Never raises.
        """
        payload = build_payload(distance_meters, timestamp)
        try:
            session = self._get_session()
            async with session.post(
                self.config.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            ) as resp:
                if 200 <= resp.status < 300:
                    self.sent_count += 1
                    logger.info("[%s] AppState sent: %s", timestamp, lifecycle_state.value)
                    return True
                body = await resp.read()
                text = body.decode("utf-8", errors="replace")
                logger.error("[%s] Error: collector returned %d - %s", timestamp, resp.status, text[:200])

        except asyncio.TimeoutError:
            logger.error("[%s] Error: collector request timed out", timestamp)
        except aiohttp.ClientError as e:
            logger.error("[%s] Error: %s", timestamp, e)

        self.failed_count += 1
        return False

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Close the HTTP session if this reporter created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
