from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Literal

import numpy as np
from numpy.typing import NDArray

from .clock import Clock, TimerHandle
from .config import EngineConfig, MotionModel
from .logging_utils import debug_enabled
from .prompts import Prompt, PromptSet

_LOGGER = logging.getLogger("promptdj.visuals")

PlaybackState = Literal["stopped", "loading", "playing", "paused"]
Vector = NDArray[np.float64]

_SHAPE_MIN_PCT = 30.0
_SHAPE_MAX_PCT = 70.0
_DRIFT_SPEED = (15.0, 45.0)  # px/s
_ANGULAR_SPEED = (0.2, 0.6)  # rad/s
_ORBIT_RADIUS = (0.2, 0.6)  # fraction of margin


@dataclass(frozen=True, slots=True)
class BorderShape:
    """Eight per-corner radii (horizontal then vertical), in percent."""

    corners: tuple[float, ...]

    def css(self) -> str:
        horizontal = " ".join(f"{value:.0f}%" for value in self.corners[:4])
        vertical = " ".join(f"{value:.0f}%" for value in self.corners[4:])
        return f"{horizontal} / {vertical}"


@dataclass(slots=True)
class Halo:
    id: str
    color: str
    weight: float
    size: float
    position: Vector
    velocity: Vector
    center: Vector
    angle: float
    angular_speed: float
    radius: float
    shape: BorderShape


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    added: frozenset[str]
    removed: frozenset[str]
    updated: frozenset[str]


def wrap(values: Vector, low: Vector, high: Vector) -> Vector:
    """Toroidal wrap of each coordinate into ``[low, high)``."""
    span = high - low
    return low + np.mod(values - low, span)


class VisualFieldSimulator:
    """Animated halos, one per active prompt.

    Membership follows the prompt weights exactly; each surviving halo keeps its
    kinematic state (position, velocity, orbital phase) across reconciliations.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        rng: np.random.Generator | None = None,
    ) -> None:
        config = config or EngineConfig()
        self._rng = rng or np.random.default_rng()
        self._size = np.array([config.width, config.height], dtype=np.float64)
        self._margin = config.margin
        self._motion_model: MotionModel = config.motion_model
        self._speed_playing = config.speed_playing
        self._speed_idle = config.speed_idle
        self._shape_interval = config.shape_interval_ms / 1000.0
        self._base_size = config.halo_base_size
        self._size_per_weight = config.halo_size_per_weight
        self._halos: dict[str, Halo] = {}
        self._playback_state: PlaybackState = "stopped"
        self._since_shape = 0.0
        self._elapsed = 0.0

    @property
    def halos(self) -> tuple[Halo, ...]:
        return tuple(self._halos.values())

    @property
    def halo_ids(self) -> frozenset[str]:
        return frozenset(self._halos)

    @property
    def margin(self) -> float:
        return self._margin

    @property
    def dimensions(self) -> tuple[float, float]:
        return float(self._size[0]), float(self._size[1])

    @property
    def motion_model(self) -> MotionModel:
        return self._motion_model

    @property
    def playback_state(self) -> PlaybackState:
        return self._playback_state

    @property
    def speed_multiplier(self) -> float:
        return self._speed_playing if self._playback_state == "playing" else self._speed_idle

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def get(self, halo_id: str) -> Halo | None:
        return self._halos.get(halo_id)

    def size_for(self, weight: float) -> float:
        return self._base_size + self._size_per_weight * weight

    def set_playback_state(self, state: PlaybackState) -> None:
        self._playback_state = state

    def resize(self, width: float, height: float) -> None:
        if not (np.isfinite(width) and np.isfinite(height)) or width <= 0 or height <= 0:
            raise ValueError(f"Field dimensions must be positive, got {width}x{height}")
        self._size = np.array([width, height], dtype=np.float64)
        for halo in self._halos.values():
            self._place(halo)

    def reconcile(self, prompts: PromptSet) -> ReconcileResult:
        active = {prompt.id: prompt for prompt in prompts.active()}
        removed = frozenset(halo_id for halo_id in self._halos if halo_id not in active)
        for halo_id in removed:
            del self._halos[halo_id]

        added: set[str] = set()
        updated: set[str] = set()
        for prompt_id, prompt in active.items():
            halo = self._halos.get(prompt_id)
            if halo is None:
                self._halos[prompt_id] = self._spawn(prompt)
                added.add(prompt_id)
                continue
            halo.weight = prompt.weight
            halo.color = prompt.color
            halo.size = self.size_for(prompt.weight)
            updated.add(prompt_id)
        return ReconcileResult(frozenset(added), removed, frozenset(updated))

    def step(self, dt: float, *, wall_dt: float | None = None) -> None:
        """Advance halos by `dt`; the shape timer follows `wall_dt` when given."""
        if dt <= 0:
            return
        wall = dt if wall_dt is None else max(wall_dt, dt)
        self._elapsed += wall
        scaled = dt * self.speed_multiplier
        for halo in self._halos.values():
            self._advance(halo, scaled)

        self._since_shape += wall
        if self._since_shape >= self._shape_interval:
            self._since_shape %= self._shape_interval
            self.regenerate_shapes()

    def regenerate_shapes(self) -> None:
        for halo in self._halos.values():
            halo.shape = self._random_shape()

    def _advance(self, halo: Halo, dt: float) -> None:
        match self._motion_model:
            case "orbit":
                halo.center = halo.center + halo.velocity * dt
                halo.angle = (halo.angle + halo.angular_speed * dt) % math.tau
            case _:
                halo.position = halo.position + halo.velocity * dt
        self._place(halo)

    def _place(self, halo: Halo) -> None:
        margin = np.full(2, self._margin)
        match self._motion_model:
            case "orbit":
                inset = margin - halo.radius
                halo.center = wrap(halo.center, -inset, self._size + inset)
                offset = np.array([math.cos(halo.angle), math.sin(halo.angle)]) * halo.radius
                halo.position = halo.center + offset
            case _:
                halo.position = wrap(halo.position, -margin, self._size + margin)

    def _spawn(self, prompt: Prompt) -> Halo:
        rng = self._rng
        heading = rng.uniform(0.0, math.tau)
        speed = rng.uniform(*_DRIFT_SPEED)
        spin = rng.uniform(*_ANGULAR_SPEED) * (1.0 if rng.random() < 0.5 else -1.0)
        center = rng.uniform(0.0, 1.0, size=2) * self._size
        halo = Halo(
            id=prompt.id,
            color=prompt.color,
            weight=prompt.weight,
            size=self.size_for(prompt.weight),
            position=center.copy(),
            velocity=np.array([math.cos(heading), math.sin(heading)]) * speed,
            center=center,
            angle=float(rng.uniform(0.0, math.tau)),
            angular_speed=float(spin),
            radius=float(rng.uniform(*_ORBIT_RADIUS) * self._margin),
            shape=self._random_shape(),
        )
        self._place(halo)
        return halo

    def _random_shape(self) -> BorderShape:
        values = self._rng.uniform(_SHAPE_MIN_PCT, _SHAPE_MAX_PCT, size=8)
        return BorderShape(tuple(float(v) for v in values))


class AnimationLoop:
    """Self-rescheduling frame callback driving ``VisualFieldSimulator.step``.

    The loop owns its pending frame handle; ``stop`` cancels it so no frame
    runs after teardown.
    """

    def __init__(
        self,
        simulator: VisualFieldSimulator,
        clock: Clock,
        *,
        frame_rate: float = 60.0,
        max_frame_delta: float = 0.1,
        on_frame: Callable[[VisualFieldSimulator], None] | None = None,
    ) -> None:
        self._simulator = simulator
        self._clock = clock
        self._period = 1.0 / frame_rate
        self._max_delta = max_frame_delta
        self._on_frame = on_frame
        self._handle: TimerHandle | None = None
        self._last: float | None = None
        self._frames = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def frames(self) -> int:
        return self._frames

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._last = self._clock.now()
        self._schedule()
        _LOGGER.debug("Animation loop started at %.1f fps", 1.0 / self._period)

    def stop(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._last = None

    def _schedule(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._clock.call_later(self._period, self._frame)

    def _frame(self) -> None:
        self._handle = None
        if not self._running:
            return
        now = self._clock.now()
        last = now if self._last is None else self._last
        self._last = now
        raw = max(now - last, 0.0)
        self._simulator.step(min(raw, self._max_delta), wall_dt=raw)
        self._frames += 1
        if self._on_frame is not None:
            try:
                self._on_frame(self._simulator)
            except Exception as exc:
                _LOGGER.warning("Frame hook failed: %s", exc, exc_info=debug_enabled())
        if self._running:
            self._schedule()
