"""GPS infrastructure - location providers, distance math and sampling."""

from .distance import calculate_distance
from .gpsd_client import (
    GpsdConfig,
    GpsdLocationProvider,
    LocationProvider,
    MockLocationProvider,
    PositionError,
    PositionErrorCode,
    PositionOptions,
)
from .sampler import PositionSampler

__all__ = [
    "GpsdConfig",
    "GpsdLocationProvider",
    "LocationProvider",
    "MockLocationProvider",
    "PositionError",
    "PositionErrorCode",
    "PositionOptions",
    "PositionSampler",
    "calculate_distance",
]
