from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

_LOGGER = logging.getLogger("promptdj.config")

MotionModel = Literal["linear", "orbit"]
IntervalMode = Literal["fixed", "random"]

ENV_PREFIX = "PROMPTDJ_"
MIN_AUTOPILOT_INTERVAL = 30.0
MAX_AUTOPILOT_INTERVAL = 300.0


class EngineConfig(BaseModel):
    """Tunables for the weighting engine, visual field and auto-pilot."""

    # Auto-pilot
    autopilot_interval: float = Field(
        default=60.0, ge=MIN_AUTOPILOT_INTERVAL, le=MAX_AUTOPILOT_INTERVAL
    )
    autopilot_mode: IntervalMode = "fixed"
    random_interval_min: float = Field(default=30.0, gt=0.0)
    random_interval_max: float = Field(default=120.0, gt=0.0)
    autopilot_stops_with_panel: bool = False

    # Visual field
    width: float = Field(default=1280.0, gt=0.0)
    height: float = Field(default=720.0, gt=0.0)
    margin: float = Field(default=120.0, ge=0.0)
    motion_model: MotionModel = "linear"
    speed_playing: float = Field(default=1.0, ge=0.0)
    speed_idle: float = Field(default=0.2, ge=0.0)
    shape_interval_ms: float = Field(default=4000.0, gt=0.0)
    frame_rate: float = Field(default=60.0, gt=0.0)
    max_frame_delta: float = Field(default=0.1, gt=0.0)
    halo_base_size: float = Field(default=120.0, ge=0.0)
    halo_size_per_weight: float = Field(default=180.0, ge=0.0)

    # Notifier and notifications
    background_throttle_ms: float = Field(default=30.0, ge=0.0)
    notification_ms: int = Field(default=5000, gt=0)
    error_notification_ms: int = Field(default=8000, gt=0)

    # Profiles and providers
    profile: str = "lofi"
    initial_active: tuple[int, ...] = (0, 5, 9)
    llm_model: str = "gemini/gemini-2.5-flash"

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_ranges(self) -> "EngineConfig":
        if self.random_interval_min > self.random_interval_max:
            raise ValueError("random_interval_min must be <= random_interval_max")
        return self


_ENV_FIELDS: Mapping[str, Callable[[str], Any]] = {
    "autopilot_interval": float,
    "autopilot_mode": str,
    "random_interval_min": float,
    "random_interval_max": float,
    "autopilot_stops_with_panel": lambda raw: raw.strip().lower() in {"1", "true", "yes", "on"},
    "width": float,
    "height": float,
    "margin": float,
    "motion_model": str,
    "speed_playing": float,
    "speed_idle": float,
    "shape_interval_ms": float,
    "frame_rate": float,
    "background_throttle_ms": float,
    "profile": str,
    "llm_model": str,
}


def load_config(
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> EngineConfig:
    """Build an ``EngineConfig`` from ``PROMPTDJ_*`` variables plus explicit overrides.

    Values that fail to parse or validate are dropped with a warning so a bad
    environment never prevents the engine from starting.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for field, parse in _ENV_FIELDS.items():
        raw = env.get(f"{ENV_PREFIX}{field.upper()}")
        if raw is None or not raw.strip():
            continue
        try:
            values[field] = parse(raw)
        except ValueError:
            _LOGGER.warning("Ignoring unparseable %s%s=%r", ENV_PREFIX, field.upper(), raw)
    values.update(overrides)

    try:
        return EngineConfig(**values)
    except ValidationError as exc:
        _LOGGER.warning("Invalid engine config (%s); retrying field by field.", exc)

    accepted: dict[str, Any] = {}
    for field, value in values.items():
        try:
            EngineConfig(**{**accepted, field: value})
        except ValidationError:
            _LOGGER.warning("Falling back to default for %s (got %r)", field, value)
            continue
        accepted[field] = value
    return EngineConfig(**accepted)
