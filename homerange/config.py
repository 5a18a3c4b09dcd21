from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .core.permissions import PlatformEnum
from .domain.models import Coordinate, LifecycleState, PermissionState


class ReferencePointConfig(BaseModel):
    latitude: float = Field(-33.84418410668397, ge=-90, le=90)
    longitude: float = Field(150.93719605234367, ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class PermissionConfig(BaseModel):
    """Host side permission answers (no dialog on a Linux host)."""
    initial: PermissionState = Field(PermissionState.UNDETERMINED)
    grant_on_request: bool = Field(True)


class LocationConfig(BaseModel):
    source: str = Field("gpsd")  # gpsd, mock
    enable_high_accuracy: bool = Field(True)
    timeout_ms: int = Field(15_000, ge=100, le=10 * 60 * 1000)
    maximum_age_ms: int = Field(10_000, ge=0)
    gpsd_host: str = Field("localhost")
    gpsd_port: int = Field(2947, ge=1, le=65535)
    mock_lat: float = Field(-33.86785, ge=-90, le=90)
    mock_lon: float = Field(151.20732, ge=-180, le=180)

    @field_validator("source")
    @classmethod
    def _validate_source(cls, value: str) -> str:
        value = value.lower()
        if value not in ("gpsd", "mock"):
            raise ValueError(f"unknown location source: {value}")
        return value


class BackgroundConfig(BaseModel):
    minimum_fetch_interval: int = Field(15, ge=15, le=24 * 60)  # minutes
    stop_on_terminate: bool = Field(False)
    start_on_boot: bool = Field(True)
    enable_headless: bool = Field(True)


class SchedulerConfig(BaseModel):
    interval_ms: int = Field(10_000, ge=1000, le=24 * 60 * 60 * 1000)
    initial_state: LifecycleState = Field(LifecycleState.ACTIVE)
    background: BackgroundConfig = Field(default_factory=BackgroundConfig)


class CollectorSettings(BaseModel):
    url: str = Field("http://localhost:8080/locationdb.php")
    timeout_s: float | None = Field(None, gt=0)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("collector url must start with http:// or https://")
        return value


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    format: str = Field("%(asctime)s | %(name)s | %(levelname)s | %(message)s")
    datefmt: str = Field("%Y-%m-%d %H:%M:%S")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {value}")
        return value


class HomerangeConfig(BaseModel):
    platform: PlatformEnum = Field(PlatformEnum.ANDROID)
    reference: ReferencePointConfig = Field(default_factory=ReferencePointConfig)
    permission: PermissionConfig = Field(default_factory=PermissionConfig)
    location: LocationConfig = Field(default_factory=LocationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Path) -> HomerangeConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    try:
        return HomerangeConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/homerange, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get("HOMERANGE_CONFIG")
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/homerange/homerange.yml"), Path("configs/homerange.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fall back to the first candidate so a missing file surfaces as an error
    return candidates[0] if candidates else Path("configs/homerange.yml").resolve()


def configure_logging(cfg: LoggingConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.level),
        format=cfg.format,
        datefmt=cfg.datefmt,
    )
