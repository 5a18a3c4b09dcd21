"""Collector delivery - reports distances to the remote endpoint."""

from .client import CollectorConfig, Reporter, build_payload

__all__ = [
    "CollectorConfig",
    "Reporter",
    "build_payload",
]
