"""
Location Provider Tests
=======================

Tests for TPV parsing, the gpsd provider (against a local fake gpsd) and the
mock provider.
"""

import asyncio
import json
from datetime import UTC, datetime, timedelta

import pytest

from homerange.infrastructure.gps.gpsd_client import (
    GpsdConfig,
    GpsdLocationProvider,
    MockLocationProvider,
    PositionError,
    PositionErrorCode,
    PositionOptions,
    parse_tpv,
)

TPV_3D = {
    "class": "TPV",
    "mode": 3,
    "time": "2024-05-01T10:00:00.000Z",
    "lat": -33.86785,
    "lon": 151.20732,
    "eph": 4.5,
}


async def _fake_gpsd(lines: list[bytes]):
    """Start a fake gpsd that answers a WATCH with the given lines."""

    async def handle(reader, writer):
        try:
            await reader.readline()
            for line in lines:
                writer.write(line)
            await writer.drain()
            await reader.read()
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


class TestParseTpv:

    def test_parses_3d_fix(self):
        fix = parse_tpv(TPV_3D)
        assert fix is not None
        assert fix.latitude == -33.86785
        assert fix.longitude == 151.20732
        assert fix.accuracy_m == 4.5
        assert fix.captured_at.year == 2024

    def test_missing_coordinates(self):
        assert parse_tpv({"class": "TPV", "mode": 1}) is None

    def test_no_fix_rejected_with_high_accuracy(self):
        data = {**TPV_3D, "mode": 1}
        assert parse_tpv(data, high_accuracy=True) is None
        assert parse_tpv(data, high_accuracy=False) is not None

    def test_out_of_range_latitude(self):
        assert parse_tpv({**TPV_3D, "lat": 123.0}) is None

    def test_epx_epy_fallback(self):
        data = {k: v for k, v in TPV_3D.items() if k != "eph"}
        data.update({"epx": 3.0, "epy": 7.0})
        assert parse_tpv(data).accuracy_m == 7.0


class TestGpsdLocationProvider:

    @pytest.mark.asyncio
    async def test_reads_first_usable_tpv(self):
        lines = [
            b'{"class":"VERSION","release":"3.25"}\n',
            b"not json\n",
            json.dumps({"class": "TPV", "mode": 1}).encode() + b"\n",
            json.dumps(TPV_3D).encode() + b"\n",
        ]
        server, port = await _fake_gpsd(lines)
        async with server:
            provider = GpsdLocationProvider(GpsdConfig(host="127.0.0.1", port=port))
            fix = await provider.get_current_position(PositionOptions(timeout_ms=2000))

        assert fix.latitude == -33.86785
        assert provider.last_fix == fix

    @pytest.mark.asyncio
    async def test_cached_fix_within_maximum_age(self):
        server, port = await _fake_gpsd([json.dumps({**TPV_3D, "time": None}).encode() + b"\n"])
        async with server:
            provider = GpsdLocationProvider(GpsdConfig(host="127.0.0.1", port=port))
            first = await provider.get_current_position(PositionOptions(timeout_ms=2000))

        # gpsd is gone now, the cached fix still answers
        second = await provider.get_current_position(PositionOptions(maximum_age_ms=60_000))
        assert second is first

    @pytest.mark.asyncio
    async def test_future_dated_fix_expires_by_receive_time(self):
        ahead = (datetime.now(UTC) + timedelta(hours=1)).isoformat()
        server, port = await _fake_gpsd([json.dumps({**TPV_3D, "time": ahead}).encode() + b"\n"])
        async with server:
            provider = GpsdLocationProvider(GpsdConfig(host="127.0.0.1", port=port, connect_timeout=1.0))
            first = await provider.get_current_position(PositionOptions(timeout_ms=2000))

        assert first.captured_at > datetime.now(UTC)
        assert first.age_seconds == 0.0
        await asyncio.sleep(0.02)

        # Too old by the local clock, so gpsd is asked again (and is gone)
        with pytest.raises(PositionError) as exc_info:
            await provider.get_current_position(PositionOptions(timeout_ms=2000, maximum_age_ms=10))
        assert exc_info.value.code == PositionErrorCode.POSITION_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_timeout_without_fix(self):
        server, port = await _fake_gpsd([b'{"class":"SKY","satellites":[]}\n'])
        async with server:
            provider = GpsdLocationProvider(GpsdConfig(host="127.0.0.1", port=port))
            with pytest.raises(PositionError) as exc_info:
                await provider.get_current_position(PositionOptions(timeout_ms=200))

        assert exc_info.value.code == PositionErrorCode.TIMEOUT

    @pytest.mark.asyncio
    async def test_unreachable_gpsd(self):
        server, port = await _fake_gpsd([])
        server.close()
        await server.wait_closed()

        provider = GpsdLocationProvider(GpsdConfig(host="127.0.0.1", port=port, connect_timeout=1.0))
        with pytest.raises(PositionError) as exc_info:
            await provider.get_current_position(PositionOptions(timeout_ms=2000))

        assert exc_info.value.code == PositionErrorCode.POSITION_UNAVAILABLE


class TestMockLocationProvider:

    @pytest.mark.asyncio
    async def test_walks_around_start(self):
        provider = MockLocationProvider(start_lat=10.0, start_lon=20.0)
        a = await provider.get_current_position(PositionOptions())
        b = await provider.get_current_position(PositionOptions())
        assert a.coordinate != b.coordinate
        assert abs(a.latitude - 10.0) <= 0.001
        assert abs(b.longitude - 20.0) <= 0.001

    @pytest.mark.asyncio
    async def test_configured_failure(self):
        provider = MockLocationProvider(fail_with=PositionErrorCode.POSITION_UNAVAILABLE)
        with pytest.raises(PositionError) as exc_info:
            await provider.get_current_position(PositionOptions())
        assert exc_info.value.code == PositionErrorCode.POSITION_UNAVAILABLE
