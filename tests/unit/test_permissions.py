"""Unit tests for the location permission gate."""

from unittest.mock import AsyncMock

import pytest

from homerange.core.permissions import (
    PermissionGate,
    PlatformEnum,
    StaticPermissionProvider,
)
from homerange.domain.models import PermissionKind, PermissionState


class TestStaticPermissionProvider:
    """Test the config driven provider."""

    @pytest.mark.asyncio
    async def test_initial_state(self):
        provider = StaticPermissionProvider(initial=PermissionState.UNDETERMINED)
        assert await provider.check(PermissionKind.LOCATION_ALWAYS) == PermissionState.UNDETERMINED

    @pytest.mark.asyncio
    async def test_request_grants(self):
        provider = StaticPermissionProvider(grant_on_request=True)
        state = await provider.request(PermissionKind.ACCESS_FINE_LOCATION)
        assert state == PermissionState.GRANTED
        assert await provider.check(PermissionKind.ACCESS_FINE_LOCATION) == PermissionState.GRANTED

    @pytest.mark.asyncio
    async def test_request_denies(self):
        provider = StaticPermissionProvider(grant_on_request=False)
        assert await provider.request(PermissionKind.LOCATION_ALWAYS) == PermissionState.DENIED

    @pytest.mark.asyncio
    async def test_set_state_overrides(self):
        provider = StaticPermissionProvider(initial=PermissionState.GRANTED)
        provider.set_state(PermissionKind.LOCATION_ALWAYS, PermissionState.DENIED)
        assert await provider.check(PermissionKind.LOCATION_ALWAYS) == PermissionState.DENIED


class TestPermissionGate:
    """Test PermissionGate policy."""

    def test_requires_background_capable_kind(self):
        assert PermissionGate(StaticPermissionProvider(), PlatformEnum.IOS).required_kind == PermissionKind.LOCATION_ALWAYS
        assert (
            PermissionGate(StaticPermissionProvider(), PlatformEnum.ANDROID).required_kind
            == PermissionKind.ACCESS_FINE_LOCATION
        )

    def test_initially_undetermined(self):
        gate = PermissionGate(StaticPermissionProvider())
        assert gate.state == PermissionState.UNDETERMINED
        assert gate.is_granted is False

    @pytest.mark.asyncio
    async def test_already_granted_does_not_request(self):
        provider = StaticPermissionProvider(initial=PermissionState.GRANTED)
        gate = PermissionGate(provider)

        state = await gate.ensure_location_permission()

        assert state == PermissionState.GRANTED
        assert provider.requests == 0
        assert gate.is_granted

    @pytest.mark.asyncio
    async def test_requests_when_undetermined(self):
        provider = StaticPermissionProvider(grant_on_request=True)
        gate = PermissionGate(provider, PlatformEnum.IOS)

        state = await gate.ensure_location_permission()

        assert state == PermissionState.GRANTED
        assert provider.requests == 1

    @pytest.mark.asyncio
    async def test_denied_is_returned_not_raised(self):
        gate = PermissionGate(StaticPermissionProvider(grant_on_request=False))

        state = await gate.ensure_location_permission()

        assert state == PermissionState.DENIED
        assert gate.state == PermissionState.DENIED
        assert gate.status.last_checked is not None

    @pytest.mark.asyncio
    async def test_provider_error_maps_to_denied(self):
        provider = AsyncMock()
        provider.check.side_effect = RuntimeError("platform exploded")
        gate = PermissionGate(provider)

        assert await gate.ensure_location_permission() == PermissionState.DENIED
        assert await gate.check() == PermissionState.DENIED

    @pytest.mark.asyncio
    async def test_check_sees_external_changes(self):
        """Permission revoked outside the process is picked up on the next check."""
        provider = StaticPermissionProvider(initial=PermissionState.GRANTED)
        gate = PermissionGate(provider)
        assert await gate.check() == PermissionState.GRANTED

        provider.set_state(gate.required_kind, PermissionState.DENIED)

        assert await gate.check() == PermissionState.DENIED
        assert provider.requests == 0
