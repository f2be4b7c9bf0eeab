"""Weight randomization policies.

Both policies are pure: they read a ``PromptSet`` and return a complete
``{prompt_id: weight}`` mapping (every id present, inactive ones at 0.0).
Applying the result is the caller's job, so one randomization is always a
single atomic store update.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import MappingProxyType
from typing import Mapping

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .categories import MAX_WEIGHT, Category
from .prompts import Prompt, PromptSet

_LOGGER = logging.getLogger("promptdj.randomizer")

WeightRange = tuple[float, float]


class Archetype(BaseModel):
    name: str
    counts: Mapping[Category, int]
    weight_range: WeightRange

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate(self) -> "Archetype":
        low, high = self.weight_range
        if not 0.0 < low <= high <= MAX_WEIGHT:
            raise ValueError(f"weight_range must satisfy 0 < min <= max <= {MAX_WEIGHT}")
        if any(count < 0 for count in self.counts.values()):
            raise ValueError("category counts must be >= 0")
        return self

    def count_for(self, category: Category) -> int:
        return self.counts.get(category, 0)


class GenericPolicy(BaseModel):
    """Ranges and odds for the everyday "Randomize" button."""

    name: str
    beat_range: WeightRange
    bass_range: WeightRange
    harmony_range: WeightRange
    melody_range: WeightRange
    texture_range: WeightRange
    harmony_chance: float = Field(ge=0.0, le=1.0)
    melody_chance: float = Field(ge=0.0, le=1.0)
    second_melody_chance: float = Field(default=0.0, ge=0.0, le=1.0)
    second_texture_chance: float = Field(ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True, extra="forbid")


ENERGETIC = GenericPolicy(
    name="energetic",
    beat_range=(1.0, 1.8),
    bass_range=(0.9, 1.5),
    harmony_range=(0.8, 1.3),
    melody_range=(0.8, 1.4),
    texture_range=(0.6, 1.1),
    harmony_chance=0.6,
    melody_chance=0.65,
    second_melody_chance=0.4,
    second_texture_chance=0.4,
)

LOFI = GenericPolicy(
    name="lofi",
    beat_range=(1.0, 1.2),
    bass_range=(1.0, 1.2),
    harmony_range=(1.0, 1.2),
    melody_range=(0.8, 1.2),
    texture_range=(0.7, 1.1),
    harmony_chance=0.5,
    melody_chance=0.7,
    second_texture_chance=0.4,
)

POLICIES: Mapping[str, GenericPolicy] = MappingProxyType({"energetic": ENERGETIC, "lofi": LOFI})


def _archetype(name: str, weight_range: WeightRange, **counts: int) -> Archetype:
    return Archetype(
        name=name,
        counts=MappingProxyType({Category(key): value for key, value in counts.items()}),
        weight_range=weight_range,
    )


ARCHETYPES: tuple[Archetype, ...] = (
    _archetype("minimal", (0.7, 1.1), beat=1, bass=1, harmony=0, melody=0, texture=1),
    _archetype("groove", (0.9, 1.4), beat=2, bass=1, harmony=1, melody=1, texture=1),
    _archetype("melodic", (0.8, 1.3), beat=1, bass=1, harmony=1, melody=2, texture=1),
    _archetype("ambient", (0.5, 1.0), beat=0, bass=1, harmony=2, melody=1, texture=2),
    _archetype("breakdown", (0.6, 1.2), beat=0, bass=0, harmony=1, melody=1, texture=2),
    _archetype("full", (1.0, 1.6), beat=2, bass=1, harmony=2, melody=2, texture=2),
)


def find_archetype(name: str) -> Archetype | None:
    key = name.strip().lower()
    for archetype in ARCHETYPES:
        if archetype.name == key:
            return archetype
    return None


def _uniform(rng: np.random.Generator, weight_range: WeightRange) -> float:
    low, high = weight_range
    return float(rng.uniform(low, high))


def _pick(
    rng: np.random.Generator,
    pool: Sequence[Prompt],
    taken: set[str],
) -> Prompt | None:
    candidates = [prompt for prompt in pool if prompt.id not in taken]
    if not candidates:
        return None
    chosen = candidates[int(rng.integers(len(candidates)))]
    taken.add(chosen.id)
    return chosen


def randomize_archetype(
    prompts: PromptSet,
    archetype: Archetype | str | None = None,
    *,
    rng: np.random.Generator | None = None,
) -> tuple[Archetype, dict[str, float]]:
    """Activate ``count`` distinct prompts per category with weights in the archetype range."""
    rng = rng or np.random.default_rng()
    match archetype:
        case Archetype():
            chosen = archetype
        case str() as name:
            found = find_archetype(name)
            if found is None:
                _LOGGER.warning("Unknown archetype %r; picking one at random.", name)
                found = ARCHETYPES[int(rng.integers(len(ARCHETYPES)))]
            chosen = found
        case _:
            chosen = ARCHETYPES[int(rng.integers(len(ARCHETYPES)))]

    weights = {prompt.id: 0.0 for prompt in prompts.prompts}
    for category in Category:
        count = chosen.count_for(category)
        if count <= 0:
            continue
        pool = prompts.by_category(category)
        if not pool:
            continue
        size = min(count, len(pool))
        for position in rng.choice(len(pool), size=size, replace=False):
            weights[pool[int(position)].id] = _uniform(rng, chosen.weight_range)
    _LOGGER.debug("Archetype %s -> %s", chosen.name, weights)
    return chosen, weights


def randomize_generic(
    prompts: PromptSet,
    policy: GenericPolicy = ENERGETIC,
    *,
    rng: np.random.Generator | None = None,
) -> dict[str, float]:
    """Musically coherent random mix: one beat, one bass, optional harmony/melody, textures."""
    rng = rng or np.random.default_rng()
    weights = {prompt.id: 0.0 for prompt in prompts.prompts}
    taken: set[str] = set()

    def _activate(category: Category, weight_range: WeightRange) -> None:
        chosen = _pick(rng, prompts.by_category(category), taken)
        if chosen is not None:
            weights[chosen.id] = _uniform(rng, weight_range)

    _activate(Category.BEAT, policy.beat_range)
    _activate(Category.BASS, policy.bass_range)
    if rng.random() < policy.harmony_chance:
        _activate(Category.HARMONY, policy.harmony_range)
    if rng.random() < policy.melody_chance:
        _activate(Category.MELODY, policy.melody_range)
        if rng.random() < policy.second_melody_chance:
            _activate(Category.MELODY, policy.melody_range)
    _activate(Category.TEXTURE, policy.texture_range)
    if rng.random() < policy.second_texture_chance:
        _activate(Category.TEXTURE, policy.texture_range)
    return weights
