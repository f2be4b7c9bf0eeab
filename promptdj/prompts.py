from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .categories import CATEGORY_SLOTS, PROMPT_COUNT, Category, category_for_index, clamp_weight
from .errors import InvalidProfileError
from .logging_utils import debug_enabled
from .profiles import Profile

_LOGGER = logging.getLogger("promptdj.prompts")

ChangeReason = Literal["init", "edit", "midi", "randomize", "autopilot", "profile", "analysis"]
PromptListener = Callable[["PromptSet", ChangeReason], None]


def prompt_id(index: int) -> str:
    return f"prompt-{index}"


class Prompt(BaseModel):
    id: str
    index: int = Field(ge=0, lt=PROMPT_COUNT)
    text: str
    weight: float = 0.0
    color: str
    category: Category

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("weight")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_weight(value)

    @property
    def active(self) -> bool:
        return self.weight > 0.0


class WeightedPrompt(BaseModel):
    """Payload row handed to the external audio-session consumer."""

    id: str
    text: str
    weight: float
    color: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class WeightsChanged(BaseModel):
    prompts: tuple[WeightedPrompt, ...]
    reason: ChangeReason

    model_config = ConfigDict(frozen=True, extra="forbid")

    def weights(self) -> dict[str, float]:
        return {prompt.id: prompt.weight for prompt in self.prompts}


class PromptSet(BaseModel):
    """Immutable snapshot of the sixteen prompts in slot order."""

    prompts: tuple[Prompt, ...]

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("prompts")
    @classmethod
    def _validate_layout(cls, value: tuple[Prompt, ...]) -> tuple[Prompt, ...]:
        if len(value) != PROMPT_COUNT:
            raise InvalidProfileError(f"expected {PROMPT_COUNT} prompts, got {len(value)}")
        ids = {prompt.id for prompt in value}
        if len(ids) != len(value):
            raise InvalidProfileError("prompt ids must be unique")
        for index, prompt in enumerate(value):
            if prompt.index != index or prompt.category is not category_for_index(index):
                raise InvalidProfileError(f"prompt {prompt.id} is not in its category slot")
        return value

    def get(self, prompt_id: str) -> Prompt | None:
        for prompt in self.prompts:
            if prompt.id == prompt_id:
                return prompt
        return None

    def ids(self) -> tuple[str, ...]:
        return tuple(prompt.id for prompt in self.prompts)

    def by_category(self, category: Category) -> tuple[Prompt, ...]:
        slot = CATEGORY_SLOTS[category]
        return self.prompts[slot.start : slot.stop]

    def active(self) -> tuple[Prompt, ...]:
        return tuple(prompt for prompt in self.prompts if prompt.active)

    def active_ids(self) -> frozenset[str]:
        return frozenset(prompt.id for prompt in self.prompts if prompt.active)

    def weights(self) -> dict[str, float]:
        return {prompt.id: prompt.weight for prompt in self.prompts}

    def weight_vector(self) -> np.ndarray:
        return np.array([prompt.weight for prompt in self.prompts], dtype=np.float64)

    def payload(self) -> tuple[WeightedPrompt, ...]:
        return tuple(
            WeightedPrompt(id=p.id, text=p.text, weight=p.weight, color=p.color)
            for p in self.prompts
        )

    def with_weights(self, weights: Mapping[str, float]) -> "PromptSet":
        """Copy with every prompt's weight taken from ``weights`` (missing ids -> 0)."""
        return PromptSet(
            prompts=tuple(
                prompt.model_copy(update={"weight": clamp_weight(weights.get(prompt.id, 0.0))})
                for prompt in self.prompts
            )
        )


def _initial_indices(
    active: int | Iterable[int],
    rng: np.random.Generator,
) -> frozenset[int]:
    match active:
        case int() as count:
            count = min(max(count, 0), PROMPT_COUNT)
            picked = rng.choice(PROMPT_COUNT, size=count, replace=False)
            return frozenset(int(i) for i in picked)
        case _:
            indices = frozenset(int(i) for i in active)
            invalid = sorted(i for i in indices if not 0 <= i < PROMPT_COUNT)
            if invalid:
                _LOGGER.warning("Ignoring out-of-range initial indices: %s", invalid)
            return frozenset(i for i in indices if 0 <= i < PROMPT_COUNT)


def build_prompt_set(
    profile: Profile,
    active: int | Iterable[int],
    *,
    rng: np.random.Generator | None = None,
) -> PromptSet:
    """Build sixteen prompts from ``profile``; ``active`` is a random count or explicit indices."""
    rng = rng or np.random.default_rng()
    on = _initial_indices(active, rng)
    return PromptSet(
        prompts=tuple(
            Prompt(
                id=prompt_id(index),
                index=index,
                text=entry.text,
                color=entry.color,
                category=category_for_index(index),
                weight=1.0 if index in on else 0.0,
            )
            for index, entry in enumerate(profile.entries)
        )
    )


class PromptStore:
    """Owns the current ``PromptSet`` and broadcasts every replacement.

    Mutations never edit a snapshot in place: each one builds a complete new
    ``PromptSet`` and swaps the reference before any listener runs, so
    listeners only ever observe consistent state.
    """

    def __init__(
        self,
        profile: Profile,
        active: int | Iterable[int] = 3,
        *,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._rng = rng or np.random.default_rng()
        self._listeners: list[PromptListener] = []
        self._active_policy: int | tuple[int, ...] = (
            active if isinstance(active, int) else tuple(active)
        )
        self._profile = profile
        self._prompts = build_prompt_set(profile, self._active_policy, rng=self._rng)

    @property
    def prompts(self) -> PromptSet:
        return self._prompts

    @property
    def profile(self) -> Profile:
        return self._profile

    def subscribe(self, listener: PromptListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                _LOGGER.debug("Listener already removed.")

        return _unsubscribe

    def initialize(
        self,
        profile: Profile,
        active: int | Iterable[int],
    ) -> PromptSet:
        self._active_policy = active if isinstance(active, int) else tuple(active)
        self._profile = profile
        return self._commit(build_prompt_set(profile, self._active_policy, rng=self._rng), "init")

    def set_weight(self, prompt_id: str, value: float, *, reason: ChangeReason = "edit") -> bool:
        current = self._prompts.get(prompt_id)
        if current is None:
            _LOGGER.debug("set_weight ignored for unknown prompt %s", prompt_id)
            return False
        weights = self._prompts.weights()
        weights[prompt_id] = clamp_weight(value)
        self._commit(self._prompts.with_weights(weights), reason)
        return True

    def set_text(self, prompt_id: str, text: str) -> bool:
        current = self._prompts.get(prompt_id)
        if current is None:
            _LOGGER.debug("set_text ignored for unknown prompt %s", prompt_id)
            return False
        updated = tuple(
            prompt.model_copy(update={"text": text}) if prompt.id == prompt_id else prompt
            for prompt in self._prompts.prompts
        )
        self._commit(PromptSet(prompts=updated), "edit")
        return True

    def apply_weights(self, weights: Mapping[str, float], *, reason: ChangeReason) -> PromptSet:
        unknown = set(weights) - set(self._prompts.ids())
        if unknown:
            _LOGGER.debug("apply_weights ignoring unknown ids: %s", sorted(unknown))
        return self._commit(self._prompts.with_weights(weights), reason)

    def replace_profile(
        self,
        profile: Profile,
        *,
        preserve_weights: bool,
        reason: ChangeReason = "profile",
    ) -> PromptSet:
        if preserve_weights:
            updated = PromptSet(
                prompts=tuple(
                    prompt.model_copy(update={"text": entry.text, "color": entry.color})
                    for prompt, entry in zip(self._prompts.prompts, profile.entries, strict=True)
                )
            )
        else:
            updated = build_prompt_set(profile, self._active_policy, rng=self._rng)
        self._profile = profile
        return self._commit(updated, reason)

    def _commit(self, prompts: PromptSet, reason: ChangeReason) -> PromptSet:
        self._prompts = prompts
        for listener in list(self._listeners):
            try:
                listener(prompts, reason)
            except Exception as exc:
                _LOGGER.warning("Prompt listener failed: %s", exc, exc_info=debug_enabled())
        return prompts
