from __future__ import annotations


class PromptDjError(Exception):
    """Base error for the promptdj engine."""


class InvalidProfileError(PromptDjError):
    """Raised when a prompt profile does not describe exactly sixteen slots."""


class AnalysisError(PromptDjError):
    """Raised when the prompt analysis provider fails to produce a usable response."""


class NoteGenerationError(PromptDjError):
    """Raised when the note generation provider fails to produce a usable response."""


class MidiAccessError(PromptDjError):
    """Raised when MIDI access cannot be acquired."""


class ProviderNotAvailableError(PromptDjError):
    """Raised when an optional provider dependency is missing."""
