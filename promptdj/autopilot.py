from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .clock import Clock, TimerHandle
from .config import MAX_AUTOPILOT_INTERVAL, MIN_AUTOPILOT_INTERVAL, EngineConfig, IntervalMode
from .logging_utils import debug_enabled

_LOGGER = logging.getLogger("promptdj.autopilot")


class AutoPilotState(str, Enum):
    OFF = "off"
    ON = "on"


class IntervalPolicy(BaseModel):
    """Either a fixed period or a fresh uniform draw per cycle."""

    mode: IntervalMode = "fixed"
    seconds: float = 60.0
    random_min: float = Field(default=30.0, gt=0.0)
    random_max: float = Field(default=120.0, gt=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("seconds")
    @classmethod
    def _clamp_seconds(cls, value: float) -> float:
        return min(max(value, MIN_AUTOPILOT_INTERVAL), MAX_AUTOPILOT_INTERVAL)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "IntervalPolicy":
        if self.random_min > self.random_max:
            raise ValueError("random_min must be <= random_max")
        return self

    @classmethod
    def fixed(cls, seconds: float) -> "IntervalPolicy":
        return cls(mode="fixed", seconds=seconds)

    @classmethod
    def random(cls, low: float = 30.0, high: float = 120.0) -> "IntervalPolicy":
        return cls(mode="random", random_min=low, random_max=high)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "IntervalPolicy":
        return cls(
            mode=config.autopilot_mode,
            seconds=config.autopilot_interval,
            random_min=config.random_interval_min,
            random_max=config.random_interval_max,
        )

    def next_delay(self, rng: np.random.Generator) -> float:
        match self.mode:
            case "random":
                return float(rng.uniform(self.random_min, self.random_max))
            case _:
                return self.seconds


class AutoPilotScheduler:
    """Re-randomizes the mix on an interval while switched on.

    At most one timer is ever outstanding: every arm cancels the previous
    handle first, and switching off cancels the pending one.
    """

    def __init__(
        self,
        randomize: Callable[[], None],
        clock: Clock,
        *,
        policy: IntervalPolicy | None = None,
        rng: np.random.Generator | None = None,
        stops_with_panel: bool = False,
    ) -> None:
        self._randomize = randomize
        self._clock = clock
        self._policy = policy or IntervalPolicy()
        self._rng = rng or np.random.default_rng()
        self._stops_with_panel = stops_with_panel
        self._state = AutoPilotState.OFF
        self._timer: TimerHandle | None = None
        self._next_fire: float | None = None
        self._fired = 0

    @property
    def state(self) -> AutoPilotState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is AutoPilotState.ON

    @property
    def policy(self) -> IntervalPolicy:
        return self._policy

    @property
    def next_fire(self) -> float | None:
        """Clock time of the pending randomization, if any."""
        return self._next_fire

    @property
    def fired(self) -> int:
        return self._fired

    def enable(self) -> None:
        if self.enabled:
            return
        self._state = AutoPilotState.ON
        _LOGGER.info("Auto-pilot on (%s)", self._describe())
        self._run()

    def disable(self) -> None:
        if not self.enabled:
            return
        self._state = AutoPilotState.OFF
        self._cancel()
        _LOGGER.info("Auto-pilot off after %d randomizations", self._fired)

    def toggle(self) -> bool:
        if self.enabled:
            self.disable()
        else:
            self.enable()
        return self.enabled

    def set_policy(self, policy: IntervalPolicy) -> None:
        """Swap the interval; while on, re-arm from now without an extra randomization."""
        self._policy = policy
        if self.enabled:
            self._arm()

    def set_interval(self, seconds: float) -> None:
        self.set_policy(
            self._policy.model_copy(
                update={
                    "mode": "fixed",
                    "seconds": min(
                        max(seconds, MIN_AUTOPILOT_INTERVAL), MAX_AUTOPILOT_INTERVAL
                    ),
                }
            )
        )

    def set_random_interval(self, low: float | None = None, high: float | None = None) -> None:
        self.set_policy(
            IntervalPolicy.random(
                self._policy.random_min if low is None else low,
                self._policy.random_max if high is None else high,
            )
        )

    def panel_visibility_changed(self, visible: bool) -> None:
        if not visible and self._stops_with_panel and self.enabled:
            _LOGGER.info("Auto-pilot panel closed; switching off.")
            self.disable()

    def close(self) -> None:
        self.disable()
        self._cancel()

    def _run(self) -> None:
        if not self.enabled:
            return
        self._timer = None
        self._next_fire = None
        self._fired += 1
        try:
            self._randomize()
        except Exception as exc:
            _LOGGER.warning("Auto-pilot randomization failed: %s", exc, exc_info=debug_enabled())
        # The randomize callback may have switched us off.
        if self.enabled:
            self._arm()

    def _arm(self) -> None:
        self._cancel()
        delay = self._policy.next_delay(self._rng)
        self._next_fire = self._clock.now() + delay
        self._timer = self._clock.call_later(delay, self._run)
        _LOGGER.debug("Auto-pilot armed for %.1fs", delay)

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._next_fire = None

    def _describe(self) -> str:
        if self._policy.mode == "random":
            return f"random {self._policy.random_min:.0f}-{self._policy.random_max:.0f}s"
        return f"every {self._policy.seconds:.0f}s"
