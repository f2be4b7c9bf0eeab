from __future__ import annotations

import logging

import pytest

from promptdj.categories import (
    CATEGORY_SLOTS,
    MAX_WEIGHT,
    PROMPT_COUNT,
    Category,
    category_for_index,
    clamp_weight,
)
from promptdj.errors import InvalidProfileError
from promptdj.profiles import (
    PROFILES,
    AnalyzedPrompt,
    Profile,
    ProfileEntry,
    distribute_analysis,
    resolve_profile,
)


def test_category_table_partitions_sixteen_slots() -> None:
    covered = [i for slot in CATEGORY_SLOTS.values() for i in slot.indices]
    assert covered == list(range(PROMPT_COUNT))
    assert [slot.size for slot in CATEGORY_SLOTS.values()] == [4, 2, 2, 4, 4]
    assert category_for_index(6) is Category.HARMONY
    with pytest.raises(IndexError):
        category_for_index(PROMPT_COUNT)


@pytest.mark.parametrize(
    ("label", "expected"),
    [("beat", Category.BEAT), (" Textures ", Category.TEXTURE), ("vocals", None), (3, None)],
)
def test_category_parse(label: object, expected: Category | None) -> None:
    assert Category.parse(label) is expected


def test_clamp_weight() -> None:
    assert clamp_weight(3.0) == MAX_WEIGHT
    assert clamp_weight(-0.5) == 0.0
    assert clamp_weight(float("nan")) == 0.0


@pytest.mark.parametrize("key", sorted(PROFILES))
def test_builtin_profiles_have_sixteen_entries(key: str) -> None:
    profile = PROFILES[key]
    assert profile.name == key
    assert len(profile.entries) == PROMPT_COUNT
    assert len(profile.entries_for(Category.MELODY)) == 4


def test_profile_rejects_wrong_size() -> None:
    with pytest.raises(InvalidProfileError):
        Profile(name="short", entries=(ProfileEntry(text="Kick", color="#FF4500"),))


def test_resolve_profile_falls_back(caplog: pytest.LogCaptureFixture) -> None:
    assert resolve_profile(" Techno ").name == "techno"
    assert resolve_profile(None).name == "lofi"
    with caplog.at_level(logging.WARNING, logger="promptdj.profiles"):
        assert resolve_profile("polka").name == "lofi"
    assert "Unknown profile" in caplog.text


def test_distribute_analysis_fills_slots_in_order() -> None:
    items = [
        AnalyzedPrompt(text=f"Beat {i}", category=Category.BEAT) for i in range(6)
    ] + [AnalyzedPrompt(text="Walking Bass", category="bass")]

    profile = distribute_analysis(items, fallback=PROFILES["jazzhop"])

    assert profile.name == "analysis"
    assert [entry.text for entry in profile.entries[:4]] == [f"Beat {i}" for i in range(4)]
    assert profile.entries[4].text == "Walking Bass"
    assert profile.entries[4].color == CATEGORY_SLOTS[Category.BASS].color
    assert profile.entries[5] == PROFILES["jazzhop"].entries[5]
    assert profile.entries[12:] == PROFILES["jazzhop"].entries[12:]


def test_analyzed_prompt_validation() -> None:
    assert AnalyzedPrompt(text="  Soft Pad ", category="Harmony").text == "Soft Pad"
    with pytest.raises(ValueError):
        AnalyzedPrompt(text="Pad", category="choir")
    with pytest.raises(ValueError):
        AnalyzedPrompt(text="   ", category="beat")
