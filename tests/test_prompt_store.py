from __future__ import annotations

import math

import numpy as np
import pytest

from promptdj.categories import MAX_WEIGHT, Category
from promptdj.errors import InvalidProfileError
from promptdj.profiles import PROFILES
from promptdj.prompts import PromptSet, PromptStore, build_prompt_set, prompt_id


def _store(active: tuple[int, ...] = (0, 5, 9)) -> PromptStore:
    return PromptStore(PROFILES["lofi"], active, rng=np.random.default_rng(7))


def test_initial_snapshot_follows_profile_layout() -> None:
    prompts = _store().prompts

    assert len(prompts.prompts) == 16
    assert prompts.ids() == tuple(prompt_id(i) for i in range(16))
    assert prompts.active_ids() == {"prompt-0", "prompt-5", "prompt-9"}
    assert prompts.prompts[0].text == "Hard Phonk Beat"
    assert prompts.prompts[4].category is Category.BASS
    assert prompts.prompts[15].category is Category.TEXTURE
    assert [p.index for p in prompts.by_category(Category.MELODY)] == [8, 9, 10, 11]


def test_random_initial_activation_count() -> None:
    store = PromptStore(PROFILES["lofi"], 3, rng=np.random.default_rng(1))
    assert len(store.prompts.active()) == 3
    assert all(p.weight == 1.0 for p in store.prompts.active())


def test_set_weight_swaps_snapshot_then_notifies() -> None:
    store = _store()
    seen: list[tuple[PromptSet, str, float]] = []

    def listener(prompts: PromptSet, reason: str) -> None:
        # The store already points at the new snapshot when listeners run.
        seen.append((prompts, reason, store.prompts.get("prompt-3").weight))

    store.subscribe(listener)
    before = store.prompts

    assert store.set_weight("prompt-3", 1.4)

    assert before.get("prompt-3").weight == 0.0
    assert store.prompts is not before
    assert store.prompts.get("prompt-3").weight == pytest.approx(1.4)
    assert seen == [(store.prompts, "edit", pytest.approx(1.4))]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(5.0, MAX_WEIGHT), (-1.0, 0.0), (math.nan, 0.0), (0.75, 0.75)],
)
def test_set_weight_clamps(value: float, expected: float) -> None:
    store = _store()
    store.set_weight("prompt-1", value)
    assert store.prompts.get("prompt-1").weight == expected


def test_unknown_prompt_is_a_noop() -> None:
    store = _store()
    calls: list[str] = []
    store.subscribe(lambda prompts, reason: calls.append(reason))
    before = store.prompts

    assert store.set_weight("prompt-99", 1.0) is False
    assert store.set_text("nope", "text") is False

    assert store.prompts is before
    assert calls == []


def test_set_text_keeps_weight_and_category() -> None:
    store = _store()
    store.set_text("prompt-5", "Warm Upright Bass")

    prompt = store.prompts.get("prompt-5")
    assert prompt.text == "Warm Upright Bass"
    assert prompt.weight == 1.0
    assert prompt.category is Category.BASS


def test_failing_listener_does_not_block_others() -> None:
    store = _store()
    reasons: list[str] = []

    def broken(prompts: PromptSet, reason: str) -> None:
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda prompts, reason: reasons.append(reason))

    store.set_weight("prompt-2", 1.0)

    assert reasons == ["edit"]


def test_unsubscribe_stops_notifications() -> None:
    store = _store()
    calls: list[str] = []
    unsubscribe = store.subscribe(lambda prompts, reason: calls.append(reason))

    unsubscribe()
    unsubscribe()
    store.set_weight("prompt-2", 1.0)

    assert calls == []


def test_apply_weights_zeroes_missing_ids() -> None:
    store = _store()
    store.apply_weights({"prompt-1": 1.2, "prompt-7": 9.0, "ghost": 1.0}, reason="randomize")

    weights = store.prompts.weights()
    assert weights["prompt-1"] == pytest.approx(1.2)
    assert weights["prompt-7"] == MAX_WEIGHT
    assert weights["prompt-0"] == 0.0
    assert store.prompts.active_ids() == {"prompt-1", "prompt-7"}


def test_replace_profile_can_preserve_weights() -> None:
    store = _store()
    before = store.prompts.weights()

    store.replace_profile(PROFILES["techno"], preserve_weights=True)

    assert store.prompts.weights() == before
    assert store.prompts.prompts[0].text == PROFILES["techno"].entries[0].text
    assert store.profile.name == "techno"


def test_replace_profile_resets_to_initial_activation() -> None:
    store = _store()
    store.set_weight("prompt-3", 1.5)

    store.replace_profile(PROFILES["ambient"], preserve_weights=False)

    assert store.prompts.active_ids() == {"prompt-0", "prompt-5", "prompt-9"}


def test_weight_vector_is_in_slot_order() -> None:
    store = _store()
    vector = store.prompts.weight_vector()

    assert vector.shape == (16,)
    assert vector[0] == 1.0
    assert vector[1] == 0.0
    assert vector.sum() == pytest.approx(3.0)


def test_prompt_set_requires_sixteen_slots() -> None:
    prompts = build_prompt_set(PROFILES["lofi"], (0,))
    with pytest.raises(InvalidProfileError):
        PromptSet(prompts=prompts.prompts[:15])


def test_prompt_set_rejects_out_of_slot_prompts() -> None:
    prompts = list(build_prompt_set(PROFILES["lofi"], (0,)).prompts)
    prompts[0], prompts[1] = prompts[1], prompts[0]
    with pytest.raises(InvalidProfileError):
        PromptSet(prompts=tuple(prompts))


def test_out_of_range_initial_indices_are_ignored() -> None:
    prompts = build_prompt_set(PROFILES["lofi"], (2, 40, -1))
    assert prompts.active_ids() == {"prompt-2"}
