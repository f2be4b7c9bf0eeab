"""Boundary types for the external text-analysis and note-generation calls."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from .profiles import AnalyzedPrompt


class Note(BaseModel):
    note: str | int
    time: float = Field(ge=0.0)
    duration: float = Field(gt=0.0)

    model_config = ConfigDict(frozen=True, extra="ignore")


class PromptAnalyzer(Protocol):
    async def analyze(self, query: str) -> list[AnalyzedPrompt] | None: ...


class NoteGenerator(Protocol):
    async def generate(self, query: str) -> list[Note] | None: ...
