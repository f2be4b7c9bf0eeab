"""Prompt profiles: sixteen-slot text/color templates grouped by category.

A profile lists its entries in slot order, so entry ``i`` always lands in the
category that owns slot ``i`` (see ``promptdj.categories.CATEGORY_SLOTS``).
Results from the external analysis call are folded back into that layout by
``distribute_analysis``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .categories import CATEGORY_SLOTS, PROMPT_COUNT, Category, category_for_index
from .errors import InvalidProfileError

_LOGGER = logging.getLogger("promptdj.profiles")

DEFAULT_PROFILE = "lofi"


class ProfileEntry(BaseModel):
    text: str = Field(min_length=1)
    color: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class Profile(BaseModel):
    name: str
    entries: tuple[ProfileEntry, ...]

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("entries")
    @classmethod
    def _validate_entries(cls, value: tuple[ProfileEntry, ...]) -> tuple[ProfileEntry, ...]:
        if len(value) != PROMPT_COUNT:
            raise InvalidProfileError(
                f"profile needs exactly {PROMPT_COUNT} entries, got {len(value)}"
            )
        return value

    def entries_for(self, category: Category) -> tuple[ProfileEntry, ...]:
        slot = CATEGORY_SLOTS[category]
        return self.entries[slot.start : slot.stop]


class AnalyzedPrompt(BaseModel):
    """One item returned by the external text/song analysis call."""

    text: str = Field(min_length=1)
    category: Category

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("text must not be blank")
        return stripped

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: object) -> Category:
        category = Category.parse(value)
        if category is None:
            raise ValueError(f"unknown category: {value!r}")
        return category


def _profile(name: str, rows: Sequence[tuple[str, str]]) -> Profile:
    return Profile(
        name=name,
        entries=tuple(ProfileEntry(color=color, text=text) for color, text in rows),
    )


def _uniform(name: str, texts: Sequence[str]) -> Profile:
    rows = [(CATEGORY_SLOTS[category_for_index(i)].color, text) for i, text in enumerate(texts)]
    return _profile(name, rows)


PROFILES: Mapping[str, Profile] = MappingProxyType(
    {
        "lofi": _profile(
            "lofi",
            [
                # Beats
                ("#FF4500", "Hard Phonk Beat"),
                ("#FF4500", "Driving House Beat"),
                ("#FF6347", "Classic Cowbell Loop"),
                ("#FF6347", "Fast Breakbeat"),
                # Bass
                ("#9932CC", "Aggressive Reese Bass"),
                ("#9932CC", "Heavy 808 Bassline"),
                # Harmony
                ("#00CED1", "Muffled Epic Pad"),
                ("#00CED1", "Sidechained Synth Pad"),
                # Melody & samples
                ("#FFD700", "Nostalgic Anime Vocal Chop"),
                ("#FF1493", "Distorted Synth Lead"),
                ("#FFD700", "Gated Reverb Melody"),
                ("#FF1493", "Plucked Koto Riff"),
                # Textures & FX
                ("#696969", "Vinyl Scratch FX"),
                ("#696969", "Tape Stop Effect"),
                ("#A9A9A9", "Bitcrushed Noise"),
                ("#A9A9A9", "Reverb Drenched Atmosphere"),
            ],
        ),
        "ambient": _uniform(
            "ambient",
            [
                "Soft Heartbeat Kick",
                "Distant Hand Drums",
                "Brushed Shaker Loop",
                "Slow Rimshot Pulse",
                "Warm Sub Drone",
                "Deep Sine Swell",
                "Glacial String Pad",
                "Choir Wash",
                "Felt Piano Motif",
                "Music Box Melody",
                "Breathy Flute Line",
                "Granular Bell Phrase",
                "Rain on Glass",
                "Forest Field Recording",
                "Tape Hiss",
                "Shimmer Reverb Tail",
            ],
        ),
        "techno": _uniform(
            "techno",
            [
                "Four on the Floor Kick",
                "Rolling Hi-Hats",
                "Industrial Percussion",
                "Clap on the Two and Four",
                "Acid 303 Bassline",
                "Rumbling Sub Bass",
                "Dark Minor Stabs",
                "Detuned Chord Pad",
                "Hypnotic Sequencer Arp",
                "Metallic Lead Riff",
                "Pitched Vocal Shot",
                "Modular Bleeps",
                "Warehouse Reverb",
                "White Noise Riser",
                "Filter Sweep",
                "Distorted Feedback",
            ],
        ),
        "jazzhop": _uniform(
            "jazzhop",
            [
                "Dusty Boom Bap Drums",
                "Lazy Swing Beat",
                "Brushed Snare Groove",
                "Laid Back Hi-Hat Shuffle",
                "Upright Jazz Bass",
                "Warm Electric Bass",
                "Rhodes Seventh Chords",
                "Mellow Horn Section",
                "Muted Trumpet Solo",
                "Saxophone Phrase",
                "Jazz Guitar Licks",
                "Vibraphone Melody",
                "Vinyl Crackle",
                "Coffee Shop Ambience",
                "Cassette Wobble",
                "Late Night Rain",
            ],
        ),
        "synthwave": _uniform(
            "synthwave",
            [
                "Gated Reverb Drums",
                "Linn Drum Groove",
                "Electronic Tom Fills",
                "Driving Snare Pattern",
                "Pulsing Octave Bass",
                "Analog Saw Bass",
                "Lush Juno Pad",
                "Bright Brass Stabs",
                "Soaring Lead Synth",
                "Arpeggiated Plucks",
                "Retro Saxophone",
                "Chorus Guitar Melody",
                "Neon Night Drive",
                "Tape Saturation",
                "Laser Zaps",
                "Cosmic Reverb",
            ],
        ),
    }
)


def resolve_profile(key: str | None) -> Profile:
    """Look up a profile by key, falling back to the default profile on a miss."""
    if key is not None:
        profile = PROFILES.get(key.strip().lower())
        if profile is not None:
            return profile
        _LOGGER.warning("Unknown profile %r; using %r.", key, DEFAULT_PROFILE)
    return PROFILES[DEFAULT_PROFILE]


def distribute_analysis(
    items: Iterable[AnalyzedPrompt],
    *,
    fallback: Profile | None = None,
) -> Profile:
    """Place analysis results into the fixed category slots.

    Items are consumed in order per category; extras beyond a category's slot
    count are discarded and empty slots keep the fallback profile's entry.
    Result colors follow the category color so analysed profiles stay visually
    consistent regardless of the source text.
    """
    base = fallback or PROFILES[DEFAULT_PROFILE]
    queues: dict[Category, list[str]] = {category: [] for category in Category}
    for item in items:
        queues[item.category].append(item.text)

    entries: list[ProfileEntry] = []
    for index in range(PROMPT_COUNT):
        category = category_for_index(index)
        slot = CATEGORY_SLOTS[category]
        offset = index - slot.start
        texts = queues[category]
        if offset < len(texts):
            entries.append(ProfileEntry(text=texts[offset], color=slot.color))
        else:
            entries.append(base.entries[index])

    dropped = sum(max(0, len(queues[c]) - CATEGORY_SLOTS[c].size) for c in Category)
    if dropped:
        _LOGGER.info("Discarded %d analysis items beyond the category slots.", dropped)
    return Profile(name="analysis", entries=tuple(entries))
