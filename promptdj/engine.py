from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .analysis import Note, NoteGenerator, PromptAnalyzer
from .autopilot import AutoPilotScheduler, IntervalPolicy
from .background import BackgroundSummary
from .categories import MAX_WEIGHT, PROMPT_COUNT
from .clock import AsyncioClock, Clock
from .config import EngineConfig
from .errors import MidiAccessError
from .logging_utils import debug_enabled
from .notifier import ChangeNotifier
from .profiles import Profile, distribute_analysis, resolve_profile
from .prompts import Prompt, PromptSet, PromptStore, WeightsChanged, prompt_id
from .randomizer import ENERGETIC, Archetype, GenericPolicy, randomize_archetype, randomize_generic
from .visuals import AnimationLoop, PlaybackState, VisualFieldSimulator

_LOGGER = logging.getLogger("promptdj.engine")

NotificationLevel = Literal["info", "error"]
MidiAccess = Callable[[], Awaitable[Sequence[str]]]


class Notification(BaseModel):
    message: str
    duration_ms: int = Field(default=5000, gt=0)
    level: NotificationLevel = "info"

    model_config = ConfigDict(frozen=True, extra="forbid")


class ControlChange(BaseModel):
    cc: int = Field(ge=0, le=127)
    value: int = Field(ge=0, le=127)
    channel: int = Field(default=0, ge=0, le=15)

    model_config = ConfigDict(frozen=True, extra="forbid")


class EngineHooks(BaseModel):
    on_weights_changed: Callable[[WeightsChanged], None] | None = None
    on_background: Callable[[BackgroundSummary], None] | None = None
    on_notification: Callable[[Notification], None] | None = None
    on_notes: Callable[[list[Note]], None] | None = None
    on_frame: Callable[[VisualFieldSimulator], None] | None = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


class PromptDjEngine:
    """Session controller wiring the store, randomizers, auto-pilot and visual field.

    All entry points are meant to be called from one event loop. The two async
    boundaries (``analyze`` / ``generate_notes``) and MIDI access re-check that
    their request is still the latest one before touching any state.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        clock: Clock | None = None,
        hooks: EngineHooks | None = None,
        analyzer: PromptAnalyzer | None = None,
        note_generator: NoteGenerator | None = None,
        policy: GenericPolicy = ENERGETIC,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._clock = clock or AsyncioClock()
        self._hooks = hooks or EngineHooks()
        self._analyzer = analyzer
        self._note_generator = note_generator
        self._policy = policy
        self._rng = rng or np.random.default_rng()

        self._default_profile = resolve_profile(self._config.profile)
        self.store = PromptStore(
            self._default_profile, self._config.initial_active, rng=self._rng
        )
        self.simulator = VisualFieldSimulator(self._config, rng=self._rng)
        self.notifier = ChangeNotifier(
            self.store,
            self.simulator,
            self._clock,
            background_interval=self._config.background_throttle_ms / 1000.0,
            on_background=self._hooks.on_background,
        )
        if self._hooks.on_weights_changed is not None:
            self.notifier.add_consumer(self._hooks.on_weights_changed)
        self.autopilot = AutoPilotScheduler(
            self._autopilot_tick,
            self._clock,
            policy=IntervalPolicy.from_config(self._config),
            rng=self._rng,
            stops_with_panel=self._config.autopilot_stops_with_panel,
        )
        self.animation = AnimationLoop(
            self.simulator,
            self._clock,
            frame_rate=self._config.frame_rate,
            max_frame_delta=self._config.max_frame_delta,
            on_frame=self._hooks.on_frame,
        )

        self._filtered: set[str] = set()
        self._cc_bindings: dict[str, int] = {prompt_id(i): i for i in range(PROMPT_COUNT)}
        self._midi_inputs: tuple[str, ...] = ()
        self._active_midi_input: str | None = None
        self._midi_request = 0
        self._analysis_request = 0
        self._notes_request = 0
        self._analyzing = False
        self._generating_notes = False
        self._closed = False

    # -- state ---------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def prompts(self) -> PromptSet:
        return self.store.prompts

    @property
    def playback_state(self) -> PlaybackState:
        return self.simulator.playback_state

    @property
    def analyzing(self) -> bool:
        return self._analyzing

    @property
    def generating_notes(self) -> bool:
        return self._generating_notes

    @property
    def filtered_texts(self) -> frozenset[str]:
        return frozenset(self._filtered)

    @property
    def midi_inputs(self) -> tuple[str, ...]:
        return self._midi_inputs

    @property
    def active_midi_input(self) -> str | None:
        return self._active_midi_input

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        self._closed = False
        self.notifier.open()
        self.notifier.sync("init")
        self.animation.start()

    def close(self) -> None:
        self._closed = True
        self.autopilot.close()
        self.animation.stop()
        self.notifier.close()

    # -- weights -------------------------------------------------------------

    def set_weight(self, prompt_id: str, weight: float) -> bool:
        return self.store.set_weight(prompt_id, weight)

    def set_text(self, prompt_id: str, text: str) -> bool:
        return self.store.set_text(prompt_id, text)

    def randomize(self, policy: GenericPolicy | None = None) -> dict[str, float]:
        weights = randomize_generic(self.prompts, policy or self._policy, rng=self._rng)
        self.store.apply_weights(weights, reason="randomize")
        return weights

    def randomize_archetype(self, archetype: Archetype | str | None = None) -> Archetype:
        chosen, weights = randomize_archetype(self.prompts, archetype, rng=self._rng)
        self.store.apply_weights(weights, reason="randomize")
        return chosen

    def _autopilot_tick(self) -> None:
        chosen, weights = randomize_archetype(self.prompts, rng=self._rng)
        _LOGGER.info("Auto-pilot applied archetype %s", chosen.name)
        self.store.apply_weights(weights, reason="autopilot")

    def toggle_autopilot(self) -> bool:
        return self.autopilot.toggle()

    def set_autopilot_panel_visible(self, visible: bool) -> None:
        self.autopilot.panel_visibility_changed(visible)

    def load_profile(self, key: str | Profile, *, preserve_weights: bool = False) -> Profile:
        profile = key if isinstance(key, Profile) else resolve_profile(key)
        self.store.replace_profile(profile, preserve_weights=preserve_weights)
        return profile

    # -- playback / moderation ----------------------------------------------

    def set_playback_state(self, state: PlaybackState) -> None:
        if state != self.simulator.playback_state:
            _LOGGER.debug("Playback %s -> %s", self.simulator.playback_state, state)
        self.simulator.set_playback_state(state)

    def mark_filtered(self, text: str, reason: str | None = None) -> None:
        """Remember a prompt text rejected downstream; kept for the whole session."""
        self._filtered.add(text)
        self.notify(f'Filtered prompt: "{text}". Reason: {reason or "unspecified"}')

    def is_filtered(self, prompt: Prompt | str) -> bool:
        if isinstance(prompt, str):
            found = self.prompts.get(prompt)
            if found is None:
                return False
            prompt = found
        return prompt.text in self._filtered

    def filtered_prompt_ids(self) -> frozenset[str]:
        return frozenset(p.id for p in self.prompts.prompts if p.text in self._filtered)

    # -- MIDI ----------------------------------------------------------------

    async def request_midi_access(self, acquire: MidiAccess) -> bool:
        self._midi_request += 1
        request = self._midi_request
        try:
            inputs = tuple(await acquire())
        except Exception as exc:
            if request == self._midi_request and not self._closed:
                error = exc if isinstance(exc, MidiAccessError) else MidiAccessError(str(exc))
                self._fail("MIDI access", error, f"MIDI access failed: {error}")
            return False
        if request != self._midi_request or self._closed:
            _LOGGER.info("Dropping stale MIDI access result.")
            return False
        self._midi_inputs = inputs
        if self._active_midi_input not in inputs:
            self._active_midi_input = inputs[0] if inputs else None
        _LOGGER.info("MIDI inputs: %s (active=%s)", list(inputs), self._active_midi_input)
        return True

    def select_midi_input(self, input_id: str) -> bool:
        if input_id not in self._midi_inputs:
            _LOGGER.debug("Unknown MIDI input %s", input_id)
            return False
        self._active_midi_input = input_id
        return True

    def bind_cc(self, prompt_id: str, cc: int) -> bool:
        if self.prompts.get(prompt_id) is None or not 0 <= cc <= 127:
            return False
        self._cc_bindings[prompt_id] = cc
        return True

    def handle_control_change(self, change: ControlChange, input_id: str | None = None) -> bool:
        if input_id is not None and input_id != self._active_midi_input:
            return False
        targets = [pid for pid, cc in self._cc_bindings.items() if cc == change.cc]
        if not targets:
            return False
        weights = self.prompts.weights()
        for target in targets:
            weights[target] = change.value / 127 * MAX_WEIGHT
        self.store.apply_weights(weights, reason="midi")
        return True

    # -- external generators -------------------------------------------------

    async def analyze(self, query: str, *, preserve_weights: bool = True) -> bool:
        """Replace prompt texts from the analysis of ``query``; False if nothing changed."""
        query = query.strip()
        if not query:
            self.notify("Enter a song, artist or mood to analyze.", level="error")
            return False
        if self._analyzer is None:
            self.notify("Prompt analysis is not configured.", level="error")
            return False

        self._analysis_request += 1
        request = self._analysis_request
        self._analyzing = True
        try:
            items = await self._analyzer.analyze(query)
        except Exception as exc:
            if request == self._analysis_request and not self._closed:
                self._fail("analysis", exc, f'Could not analyze "{query}": {exc}')
            return False
        finally:
            if request == self._analysis_request:
                self._analyzing = False

        if request != self._analysis_request or self._closed:
            _LOGGER.info("Dropping stale analysis result for %r", query)
            return False
        if not items:
            self.notify(f'No prompts found for "{query}".', level="error")
            return False

        profile = distribute_analysis(items, fallback=self._default_profile)
        self.store.replace_profile(profile, preserve_weights=preserve_weights, reason="analysis")
        self.notify(f'Loaded prompts for "{query}".')
        return True

    async def generate_notes(self, query: str) -> list[Note] | None:
        """Ask the note generator for a preview sequence; never touches the prompts."""
        query = query.strip()
        if not query or self._note_generator is None:
            self.notify("Note generation is not available.", level="error")
            return None

        self._notes_request += 1
        request = self._notes_request
        self._generating_notes = True
        try:
            notes = await self._note_generator.generate(query)
        except Exception as exc:
            if request == self._notes_request and not self._closed:
                self._fail("note generation", exc, f'Could not generate notes for "{query}": {exc}')
            return None
        finally:
            if request == self._notes_request:
                self._generating_notes = False

        if request != self._notes_request or self._closed:
            _LOGGER.info("Dropping stale note result for %r", query)
            return None
        if not notes:
            self.notify(f'No notes generated for "{query}".', level="error")
            return None
        if self._hooks.on_notes is not None:
            try:
                self._hooks.on_notes(notes)
            except Exception as exc:
                _LOGGER.warning("Notes hook failed: %s", exc, exc_info=debug_enabled())
        return notes

    # -- notifications -------------------------------------------------------

    def notify(self, message: str, *, level: Literal["info", "error"] = "info") -> Notification:
        duration = (
            self._config.error_notification_ms if level == "error" else self._config.notification_ms
        )
        notification = Notification(message=message, duration_ms=duration, level=level)
        _LOGGER.info("Notification (%s): %s", level, message)
        if self._hooks.on_notification is not None:
            try:
                self._hooks.on_notification(notification)
            except Exception as exc:
                _LOGGER.warning("Notification hook failed: %s", exc, exc_info=debug_enabled())
        return notification

    def _fail(self, context: str, exc: BaseException, message: str) -> None:
        _LOGGER.warning("%s failed: %s", context, exc, exc_info=debug_enabled())
        self.notify(message, level="error")
