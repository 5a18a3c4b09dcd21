"""Homerange Core - Event bus, permission gate and lifecycle tracking."""

from .events import Event, EventBus, EventType
from .lifecycle import EventBusLifecycleSource, LifecycleTracker
from .permissions import (
    PermissionGate,
    PermissionProvider,
    PlatformEnum,
    StaticPermissionProvider,
)

__all__ = [
    # Events
    "Event",
    "EventBus",
    "EventType",
    # Lifecycle
    "EventBusLifecycleSource",
    "LifecycleTracker",
    # Permissions
    "PermissionGate",
    "PermissionProvider",
    "PlatformEnum",
    "StaticPermissionProvider",
]
