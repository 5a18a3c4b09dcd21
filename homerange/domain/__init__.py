"""Homerange Domain Layer - Core models and enums."""

from .models import (
    Coordinate,
    DistanceReport,
    LifecycleState,
    PermissionKind,
    PermissionState,
    PositionFix,
    isoformat_utc,
)

__all__ = [
    "Coordinate",
    "DistanceReport",
    "LifecycleState",
    "PermissionKind",
    "PermissionState",
    "PositionFix",
    "isoformat_utc",
]
