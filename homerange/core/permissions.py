"""
Homerange Permission Gate - Location access gating.

All sampling is gated on location permission. The permission can change
outside the process (user revokes it in settings), so it is re-checked before
every sampling attempt instead of being cached for the process lifetime.

Features:
- Platform aware: requests the background capable ("always") variant
- Check first, request only when not yet granted
- DENIED is a normal outcome, never an exception
- Provider failures degrade to DENIED with a log line
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from ..domain.models import PermissionKind, PermissionState

logger = logging.getLogger(__name__)


class PlatformEnum(str, Enum):
    IOS = "ios"
    ANDROID = "android"


# Background capable permission variant per platform
REQUIRED_KIND: dict[PlatformEnum, PermissionKind] = {
    PlatformEnum.IOS: PermissionKind.LOCATION_ALWAYS,
    PlatformEnum.ANDROID: PermissionKind.ACCESS_FINE_LOCATION,
}


class PermissionProvider(Protocol):
    """Host platform permission capability."""

    async def check(self, kind: PermissionKind) -> PermissionState: ...

    async def request(self, kind: PermissionKind) -> PermissionState: ...


@dataclass
class PermissionStatus:
    """Last observed permission status."""
    kind: PermissionKind
    state: PermissionState = PermissionState.UNDETERMINED
    last_checked: datetime | None = None


@dataclass
class StaticPermissionProvider:
    """
    Permission provider for hosts without a permission dialog.

    The initial state and the answer to a request come from configuration,
    so a Linux host can be run as "granted", "denied" or "ask and grant".
    """
    initial: PermissionState = PermissionState.UNDETERMINED
    grant_on_request: bool = True
    _states: dict[PermissionKind, PermissionState] = field(default_factory=dict)
    requests: int = 0

    async def check(self, kind: PermissionKind) -> PermissionState:
        return self._states.get(kind, self.initial)

    async def request(self, kind: PermissionKind) -> PermissionState:
        self.requests += 1
        current = await self.check(kind)
        if current == PermissionState.GRANTED:
            return current
        state = PermissionState.GRANTED if self.grant_on_request else PermissionState.DENIED
        self._states[kind] = state
        return state

    def set_state(self, kind: PermissionKind, state: PermissionState) -> None:
        """Change the state from outside, like a user toggling a setting."""
        self._states[kind] = state


class PermissionGate:
    """
    Location permission gate.

    Usage:
        gate = PermissionGate(provider, PlatformEnum.ANDROID)

        # At startup: check, and prompt if needed
        state = await gate.ensure_location_permission()

        # Before each sample: re-check only
        if await gate.check() is PermissionState.GRANTED:
            ...
    """

    def __init__(
        self,
        provider: PermissionProvider,
        platform: PlatformEnum = PlatformEnum.ANDROID,
    ) -> None:
        self._provider = provider
        self.platform = platform
        self._status = PermissionStatus(kind=REQUIRED_KIND[platform])

    @property
    def required_kind(self) -> PermissionKind:
        return self._status.kind

    @property
    def state(self) -> PermissionState:
        """Last observed state (UNDETERMINED until the first check)."""
        return self._status.state

    @property
    def status(self) -> PermissionStatus:
        return self._status

    @property
    def is_granted(self) -> bool:
        return self._status.state == PermissionState.GRANTED

    def _record(self, state: PermissionState) -> PermissionState:
        self._status.state = state
        self._status.last_checked = datetime.now(UTC)
        return state

    async def check(self) -> PermissionState:
        """Re-check the current permission without prompting."""
        try:
            state = await self._provider.check(self.required_kind)
        except Exception as e:
            logger.error("Error checking location permission: %s", e)
            state = PermissionState.DENIED
        return self._record(state)

    async def ensure_location_permission(self) -> PermissionState:
        """
        Check the permission and request it when not granted.

        Returns:
            The resulting state. DENIED is a valid outcome; callers skip
            sampling instead of failing.
        """
        try:
            state = await self._provider.check(self.required_kind)
            if state != PermissionState.GRANTED:
                logger.info("Requesting %s permission", self.required_kind.value)
                state = await self._provider.request(self.required_kind)
        except Exception as e:
            logger.error("Error requesting location permission: %s", e)
            state = PermissionState.DENIED

        if state != PermissionState.GRANTED:
            logger.warning("Location permission denied")
        return self._record(state)
