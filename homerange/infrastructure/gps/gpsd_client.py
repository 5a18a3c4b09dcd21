"""Location providers: one-shot position fixes from gpsd or a simulator."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Optional, Protocol

from ...domain.models import Coordinate, PositionFix

logger = logging.getLogger(__name__)


class PositionErrorCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"


class PositionError(Exception):
    """A position request ended without a fix."""

    def __init__(self, code: PositionErrorCode, message: str = "") -> None:
        super().__init__(f"{code.value}: {message}" if message else code.value)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class PositionOptions:
    """Options for a single position request."""

    enable_high_accuracy: bool = True  # Require a real 2D/3D fix
    timeout_ms: int = 15_000  # Give up when no fix arrives in this window
    maximum_age_ms: int = 10_000  # Accept a cached fix up to this old

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


class LocationProvider(Protocol):
    """Platform location capability."""

    async def get_current_position(self, options: PositionOptions) -> PositionFix: ...


@dataclass
class GpsdConfig:
    """GPS daemon connection configuration."""

    host: str = "localhost"
    port: int = 2947
    connect_timeout: float = 5.0


class GpsdLocationProvider:
    """
    One-shot gpsd client.

    Each request opens a watch on gpsd, waits for the first usable TPV
    (Time-Position-Velocity) report and disconnects. The last fix is cached
    and reused while it is younger than ``maximum_age_ms``.

    Usage:
        provider = GpsdLocationProvider(GpsdConfig(host="localhost"))
        fix = await provider.get_current_position(PositionOptions())
    """

    def __init__(self, config: GpsdConfig | None = None) -> None:
        self.config = config or GpsdConfig()
        self._last_fix: Optional[PositionFix] = None
        self._last_fix_received: float = 0.0  # loop time, gpsd clocks can run ahead

    @property
    def last_fix(self) -> Optional[PositionFix]:
        return self._last_fix

    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        cached = self._last_fix
        if cached is not None:
            age = asyncio.get_running_loop().time() - self._last_fix_received
            if age * 1000 <= options.maximum_age_ms:
                logger.debug("Using cached fix (%.1fs old)", age)
                return cached

        try:
            async with asyncio.timeout(options.timeout_s):
                fix = await self._read_fix(options.enable_high_accuracy)
        except TimeoutError as e:
            raise PositionError(
                PositionErrorCode.TIMEOUT,
                f"no fix within {options.timeout_ms} ms",
            ) from e

        self._last_fix = fix
        self._last_fix_received = asyncio.get_running_loop().time()
        return fix

    async def _read_fix(self, high_accuracy: bool) -> PositionFix:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=self.config.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise PositionError(
                PositionErrorCode.POSITION_UNAVAILABLE,
                f"gpsd unreachable at {self.config.host}:{self.config.port} ({e})",
            ) from e

        try:
            writer.write(b'?WATCH={"enable":true,"json":true}\n')
            await writer.drain()

            while True:
                line = await reader.readline()
                if not line:
                    raise PositionError(
                        PositionErrorCode.POSITION_UNAVAILABLE,
                        "gpsd closed the connection",
                    )
                try:
                    data = json.loads(line.decode("utf-8"))
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    logger.warning("GPS JSON parse error: %s", e)
                    continue

                if data.get("class") != "TPV":
                    continue
                fix = parse_tpv(data, high_accuracy=high_accuracy)
                if fix is not None:
                    return fix
        finally:
            try:
                writer.write(b'?WATCH={"enable":false}\n')
                writer.close()
                await writer.wait_closed()
            except (OSError, RuntimeError):
                pass


def parse_tpv(data: dict, high_accuracy: bool = True) -> Optional[PositionFix]:
    """
    Parse a gpsd TPV message.

    Args:
        data: JSON dict from gpsd TPV message
        high_accuracy: Require mode >= 2 (2D or 3D fix)

    Returns:
        PositionFix if a usable lat/lon is present, None otherwise
    """
    if "lat" not in data or "lon" not in data:
        return None

    # Mode: 0=unknown, 1=no fix, 2=2D, 3=3D
    if high_accuracy and data.get("mode", 0) < 2:
        return None

    try:
        coordinate = Coordinate(latitude=float(data["lat"]), longitude=float(data["lon"]))
    except (ValueError, TypeError) as e:
        logger.error("TPV parse error: %s - data: %s", e, data)
        return None

    captured_at = datetime.now(UTC)
    if isinstance(data.get("time"), str):
        try:
            captured_at = datetime.fromisoformat(data["time"])
        except ValueError:
            pass

    accuracy = data.get("eph")
    if accuracy is None and data.get("epx") is not None and data.get("epy") is not None:
        accuracy = max(data["epx"], data["epy"])

    return PositionFix(
        coordinate=coordinate,
        captured_at=captured_at,
        accuracy_m=float(accuracy) if accuracy is not None else None,
    )


class MockLocationProvider:
    """
    Simulated location provider for development and dry runs.

    Walks a small circle around a start point, one step per request.
    Set ``fail_with`` to make every request fail with that error code.
    """

    def __init__(
        self,
        start_lat: float = -33.86785,  # Sydney CBD
        start_lon: float = 151.20732,
        radius_deg: float = 0.001,  # ~111 meters
        delay_s: float = 0.0,
        fail_with: PositionErrorCode | None = None,
    ) -> None:
        self._start_lat = start_lat
        self._start_lon = start_lon
        self._radius = radius_deg
        self._delay = delay_s
        self.fail_with = fail_with
        self._step = 0

    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self.fail_with is not None:
            raise PositionError(self.fail_with, "simulated failure")

        angle = math.radians(self._step * 5)
        self._step += 1
        lat = self._start_lat + self._radius * math.sin(angle)
        lon = self._start_lon + self._radius * math.cos(angle)

        return PositionFix(
            coordinate=Coordinate(latitude=lat, longitude=lon),
            accuracy_m=5.0 if options.enable_high_accuracy else 50.0,
        )
