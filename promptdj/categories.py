from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict

_LOGGER = logging.getLogger("promptdj.categories")

PROMPT_COUNT = 16
MAX_WEIGHT = 2.0


class Category(str, Enum):
    BEAT = "beat"
    BASS = "bass"
    HARMONY = "harmony"
    MELODY = "melody"
    TEXTURE = "texture"

    @classmethod
    def parse(cls, value: object) -> "Category | None":
        """Lenient lookup used on external payloads; returns None on a miss."""
        if isinstance(value, Category):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for category in cls:
            if key in (category.value, f"{category.value}s"):
                return category
        _LOGGER.debug("Unknown category label %r", value)
        return None


class CategorySlot(BaseModel):
    """Static slot range and defaults for one category."""

    category: Category
    start: int
    stop: int
    color: str
    default_count: int

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def indices(self) -> range:
        return range(self.start, self.stop)

    @property
    def size(self) -> int:
        return self.stop - self.start


CATEGORY_SLOTS: Mapping[Category, CategorySlot] = MappingProxyType(
    {
        Category.BEAT: CategorySlot(
            category=Category.BEAT, start=0, stop=4, color="#FF4500", default_count=1
        ),
        Category.BASS: CategorySlot(
            category=Category.BASS, start=4, stop=6, color="#9932CC", default_count=1
        ),
        Category.HARMONY: CategorySlot(
            category=Category.HARMONY, start=6, stop=8, color="#00CED1", default_count=1
        ),
        Category.MELODY: CategorySlot(
            category=Category.MELODY, start=8, stop=12, color="#FFD700", default_count=1
        ),
        Category.TEXTURE: CategorySlot(
            category=Category.TEXTURE, start=12, stop=16, color="#696969", default_count=1
        ),
    }
)


def category_for_index(index: int) -> Category:
    for slot in CATEGORY_SLOTS.values():
        if slot.start <= index < slot.stop:
            return slot.category
    raise IndexError(f"prompt index {index} is outside 0..{PROMPT_COUNT - 1}")


def clamp_weight(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return min(max(float(value), 0.0), MAX_WEIGHT)
