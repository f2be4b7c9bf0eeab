from __future__ import annotations

from .analysis import Note, NoteGenerator, PromptAnalyzer
from .autopilot import AutoPilotScheduler, AutoPilotState, IntervalPolicy
from .background import BackgroundSummary, GradientLayer, summarize_background
from .categories import CATEGORY_SLOTS, MAX_WEIGHT, PROMPT_COUNT, Category, CategorySlot
from .clock import AsyncioClock, Clock, ManualClock
from .config import EngineConfig, load_config
from .engine import ControlChange, EngineHooks, Notification, PromptDjEngine
from .errors import (
    AnalysisError,
    InvalidProfileError,
    MidiAccessError,
    NoteGenerationError,
    PromptDjError,
    ProviderNotAvailableError,
)
from .notifier import ChangeNotifier
from .profiles import PROFILES, AnalyzedPrompt, Profile, ProfileEntry, resolve_profile
from .prompts import Prompt, PromptSet, PromptStore, WeightedPrompt, WeightsChanged
from .randomizer import (
    ARCHETYPES,
    ENERGETIC,
    LOFI,
    Archetype,
    GenericPolicy,
    randomize_archetype,
    randomize_generic,
)
from .visuals import AnimationLoop, Halo, PlaybackState, VisualFieldSimulator

__all__ = [
    "ARCHETYPES",
    "CATEGORY_SLOTS",
    "ENERGETIC",
    "LOFI",
    "MAX_WEIGHT",
    "PROFILES",
    "PROMPT_COUNT",
    "AnalysisError",
    "AnalyzedPrompt",
    "AnimationLoop",
    "Archetype",
    "AsyncioClock",
    "AutoPilotScheduler",
    "AutoPilotState",
    "BackgroundSummary",
    "Category",
    "CategorySlot",
    "ChangeNotifier",
    "Clock",
    "ControlChange",
    "EngineConfig",
    "EngineHooks",
    "GenericPolicy",
    "GradientLayer",
    "Halo",
    "IntervalPolicy",
    "InvalidProfileError",
    "ManualClock",
    "MidiAccessError",
    "Note",
    "NoteGenerationError",
    "NoteGenerator",
    "Notification",
    "PlaybackState",
    "Profile",
    "ProfileEntry",
    "Prompt",
    "PromptAnalyzer",
    "PromptDjEngine",
    "PromptDjError",
    "PromptSet",
    "PromptStore",
    "ProviderNotAvailableError",
    "VisualFieldSimulator",
    "WeightedPrompt",
    "WeightsChanged",
    "load_config",
    "randomize_archetype",
    "randomize_generic",
    "resolve_profile",
    "summarize_background",
]

__version__ = "0.1.0"
