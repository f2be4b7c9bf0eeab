from __future__ import annotations

import logging

import numpy as np
import pytest

from promptdj.categories import CATEGORY_SLOTS, Category
from promptdj.profiles import PROFILES
from promptdj.prompts import PromptSet, build_prompt_set
from promptdj.randomizer import (
    ARCHETYPES,
    ENERGETIC,
    LOFI,
    Archetype,
    find_archetype,
    randomize_archetype,
    randomize_generic,
)


def _prompts(active: tuple[int, ...] = (0, 5, 9)) -> PromptSet:
    return build_prompt_set(PROFILES["lofi"], active)


def _active_in(prompts: PromptSet, weights: dict[str, float], category: Category) -> list[float]:
    return [weights[p.id] for p in prompts.by_category(category) if weights[p.id] > 0]


@pytest.mark.parametrize("archetype", ARCHETYPES, ids=lambda a: a.name)
def test_archetype_counts_and_ranges(archetype: Archetype) -> None:
    prompts = _prompts()
    low, high = archetype.weight_range
    for seed in range(25):
        chosen, weights = randomize_archetype(prompts, archetype, rng=np.random.default_rng(seed))

        assert chosen is archetype
        assert set(weights) == set(prompts.ids())
        for category, slot in CATEGORY_SLOTS.items():
            active = _active_in(prompts, weights, category)
            assert len(active) == min(archetype.count_for(category), slot.size)
            assert all(low <= weight <= high for weight in active)
        assert all(weight == 0.0 or low <= weight <= high for weight in weights.values())


def test_archetype_by_name() -> None:
    chosen, _ = randomize_archetype(_prompts(), "Groove", rng=np.random.default_rng(0))
    assert chosen.name == "groove"
    assert find_archetype("missing") is None


def test_unknown_archetype_falls_back_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="promptdj.randomizer"):
        chosen, weights = randomize_archetype(
            _prompts(), "polka", rng=np.random.default_rng(0)
        )

    assert chosen in ARCHETYPES
    assert any(weight > 0 for weight in weights.values())
    assert "Unknown archetype" in caplog.text


def test_archetype_rejects_bad_range() -> None:
    with pytest.raises(ValueError):
        Archetype(name="bad", counts={Category.BEAT: 1}, weight_range=(1.5, 1.0))


def test_generic_always_has_one_beat_and_one_bass() -> None:
    prompts = _prompts()
    for seed in range(200):
        weights = randomize_generic(prompts, rng=np.random.default_rng(seed))

        beats = _active_in(prompts, weights, Category.BEAT)
        basses = _active_in(prompts, weights, Category.BASS)
        assert len(beats) == 1 and 1.0 <= beats[0] <= 1.8
        assert len(basses) == 1 and 0.9 <= basses[0] <= 1.5
        assert 1 <= len(_active_in(prompts, weights, Category.TEXTURE)) <= 2
        assert len(_active_in(prompts, weights, Category.HARMONY)) <= 1
        assert len(_active_in(prompts, weights, Category.MELODY)) <= 2
        assert max(weights.values()) <= 1.8


def test_generic_replaces_previous_selection() -> None:
    prompts = _prompts((0, 4, 6))
    weights = randomize_generic(prompts, ENERGETIC, rng=np.random.default_rng(11))

    active = {pid for pid, weight in weights.items() if weight > 0}
    assert len([pid for pid in active if prompts.get(pid).category is Category.BEAT]) == 1
    assert len([pid for pid in active if prompts.get(pid).category is Category.BASS]) == 1
    for pid, weight in weights.items():
        if pid not in active:
            assert weight == 0.0


def test_lofi_policy_ranges() -> None:
    prompts = _prompts()
    for seed in range(100):
        weights = randomize_generic(prompts, LOFI, rng=np.random.default_rng(seed))

        assert all(1.0 <= w <= 1.2 for w in _active_in(prompts, weights, Category.BEAT))
        assert all(1.0 <= w <= 1.2 for w in _active_in(prompts, weights, Category.BASS))
        assert len(_active_in(prompts, weights, Category.MELODY)) <= 1
        assert all(0.7 <= w <= 1.1 for w in _active_in(prompts, weights, Category.TEXTURE))


def test_randomizers_are_pure() -> None:
    prompts = _prompts()
    before = prompts.weights()

    randomize_generic(prompts, rng=np.random.default_rng(1))
    randomize_archetype(prompts, rng=np.random.default_rng(1))

    assert prompts.weights() == before


def test_same_seed_same_mix() -> None:
    prompts = _prompts()
    first = randomize_generic(prompts, rng=np.random.default_rng(42))
    second = randomize_generic(prompts, rng=np.random.default_rng(42))
    assert first == second
