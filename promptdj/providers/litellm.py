from __future__ import annotations

import json
import logging
import warnings
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from ..analysis import Note
from ..categories import CATEGORY_SLOTS, Category
from ..errors import AnalysisError, NoteGenerationError, PromptDjError, ProviderNotAvailableError
from ..profiles import AnalyzedPrompt

_DEFAULT_MODEL = "gemini/gemini-2.5-flash"
_LOGGER = logging.getLogger("promptdj.providers.litellm")
_RESERVED_LITELLM_KWARGS = frozenset({"model", "messages", "response_format", "api_key"})
_litellm_logging_configured = False

CategoryLabel = Literal["beat", "bass", "harmony", "melody", "texture"]

_ANALYSIS_PROMPT = (
    "You design prompt banks for a real-time music generator. Given a song, artist, "
    "genre or mood, describe it as short instrument/style prompts (2-5 words each). "
    "Return JSON of the form "
    '{"prompts": [{"text": "...", "category": "beat|bass|harmony|melody|texture"}]} '
    "with exactly "
    + ", ".join(f"{slot.size} {category.value}" for category, slot in CATEGORY_SLOTS.items())
    + " prompts."
)

_NOTES_PROMPT = (
    "You write short melodies. Given a description, return JSON of the form "
    '{"notes": [{"note": "C4", "time": 0.0, "duration": 0.5}]} '
    "with times and durations in seconds, at most 64 notes, ordered by time."
)


class _PromptItem(BaseModel):
    text: str
    category: CategoryLabel


class AnalysisResponse(BaseModel):
    prompts: list[_PromptItem]


class NotesResponse(BaseModel):
    notes: list[Note]


class _LiteLLMRequest(BaseModel):
    model: str
    messages: list[dict[str, str]]
    temperature: float | None = None
    response_format: type[BaseModel] | None = None
    api_key: str | None = None


def _configure_litellm_logging(litellm_module: Any) -> None:
    global _litellm_logging_configured
    if _litellm_logging_configured:
        return
    _litellm_logging_configured = True
    try:
        litellm_module.turn_off_message_logging = True
        litellm_module.suppress_debug_info = True
    except Exception as exc:
        _LOGGER.info("LiteLLM logging config failed: %s", exc, exc_info=True)
    warnings.filterwarnings("ignore", message="Pydantic serializer warnings")


def _extract_json_payload(content: str) -> str | None:
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return content[start : end + 1]


def _content_snippet(content: str, limit: int = 200) -> str:
    cleaned = content.strip()
    if len(cleaned) <= limit:
        return cleaned
    return f"{cleaned[:limit]}..."


def _load_object(content: str) -> dict[str, Any] | None:
    for candidate in (content, _extract_json_payload(content)):
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_analysis(content: str) -> list[AnalyzedPrompt]:
    """Parse an analysis reply item by item; malformed items are skipped."""
    data = _load_object(content)
    if data is None:
        raise AnalysisError(f"analysis returned non-JSON content: {_content_snippet(content)}")
    raw_items = data.get("prompts")
    if not isinstance(raw_items, list):
        raise AnalysisError("analysis response is missing a 'prompts' list")
    items: list[AnalyzedPrompt] = []
    for raw in raw_items:
        try:
            items.append(AnalyzedPrompt.model_validate(raw))
        except ValidationError:
            _LOGGER.info("Skipping malformed analysis item: %r", raw)
    return items


def parse_notes(content: str) -> list[Note]:
    data = _load_object(content)
    if data is None:
        snippet = _content_snippet(content)
        raise NoteGenerationError(f"note generation returned non-JSON content: {snippet}")
    raw_notes = data.get("notes")
    if not isinstance(raw_notes, list):
        raise NoteGenerationError("note response is missing a 'notes' list")
    notes: list[Note] = []
    for raw in raw_notes:
        try:
            notes.append(Note.model_validate(raw))
        except ValidationError:
            _LOGGER.info("Skipping malformed note: %r", raw)
    return sorted(notes, key=lambda note: note.time)


class _LiteLLMClient:
    def __init__(
        self,
        model: str = _DEFAULT_MODEL,
        *,
        api_key: str | None = None,
        temperature: float | None = None,
        litellm_kwargs: Mapping[str, Any] | None = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._temperature = temperature
        self._litellm_kwargs = dict(litellm_kwargs or {})
        if self._api_key is None:
            _LOGGER.debug("No API key provided; letting LiteLLM read from env vars.")
        invalid_keys = _RESERVED_LITELLM_KWARGS.intersection(self._litellm_kwargs)
        if invalid_keys:
            keys = ", ".join(sorted(invalid_keys))
            raise PromptDjError(f"litellm_kwargs cannot override: {keys}")

    @property
    def model(self) -> str:
        return self._model

    async def _complete(
        self,
        system_prompt: str,
        query: str,
        response_format: type[BaseModel],
    ) -> str:
        try:
            import litellm  # type: ignore[import]
        except ImportError as exc:
            _LOGGER.warning("LiteLLM not installed: %s", exc)
            raise ProviderNotAvailableError("litellm is not installed") from exc

        _configure_litellm_logging(litellm)
        request = _LiteLLMRequest(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": query},
            ],
            temperature=self._temperature,
            response_format=response_format,
            api_key=self._api_key or None,
        ).model_dump(exclude_none=True)
        request.update(self._litellm_kwargs)

        response: Any = await litellm.acompletion(**request)
        if not hasattr(response, "choices") or not response.choices:
            raise PromptDjError("LiteLLM response missing choices")
        content = response.choices[0].message.content
        if not isinstance(content, str) or not content.strip():
            raise PromptDjError("LiteLLM returned empty content")
        return content.strip()


class LiteLLMPromptAnalyzer(_LiteLLMClient):
    """Turns a song/genre/mood query into categorized prompt texts."""

    async def analyze(self, query: str) -> list[AnalyzedPrompt] | None:
        try:
            content = await self._complete(_ANALYSIS_PROMPT, query, AnalysisResponse)
        except ProviderNotAvailableError:
            raise
        except Exception as exc:
            _LOGGER.warning("LiteLLM analysis request failed: %s", exc, exc_info=True)
            raise AnalysisError(str(exc)) from exc
        items = parse_analysis(content)
        if not items:
            _LOGGER.warning("Analysis produced no usable prompts for %r", query)
            return None
        counts = {category.value: 0 for category in Category}
        for item in items:
            counts[item.category.value] += 1
        _LOGGER.info("Analysis for %r: %s", query, counts)
        return items


class LiteLLMNoteGenerator(_LiteLLMClient):
    """Turns a description into a short note sequence for audio preview."""

    async def generate(self, query: str) -> list[Note] | None:
        try:
            content = await self._complete(_NOTES_PROMPT, query, NotesResponse)
        except ProviderNotAvailableError:
            raise
        except Exception as exc:
            _LOGGER.warning("LiteLLM note request failed: %s", exc, exc_info=True)
            raise NoteGenerationError(str(exc)) from exc
        notes = parse_notes(content)
        return notes or None
