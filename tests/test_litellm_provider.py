from __future__ import annotations

import json
from types import SimpleNamespace

import litellm
import pytest

from promptdj.categories import Category
from promptdj.errors import AnalysisError, NoteGenerationError, PromptDjError
from promptdj.providers.litellm import (
    _ANALYSIS_PROMPT,
    AnalysisResponse,
    LiteLLMNoteGenerator,
    LiteLLMPromptAnalyzer,
    NotesResponse,
    parse_analysis,
    parse_notes,
)


def _reply(content: str) -> object:
    message = SimpleNamespace(content=content)
    choice = SimpleNamespace(message=message)
    return SimpleNamespace(choices=[choice])


@pytest.mark.asyncio
async def test_analyzer_requests_structured_output(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: dict[str, object] = {}
    payload = {
        "prompts": [
            {"text": "Dusty Kick Loop", "category": "beat"},
            {"text": "Round Sub Bass", "category": "Bass"},
            {"text": "Tape Hiss", "category": "textures"},
        ]
    }

    async def fake_acompletion(**kwargs: object) -> object:
        captured.update(kwargs)
        return _reply(json.dumps(payload))

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)

    analyzer = LiteLLMPromptAnalyzer(model="gemini/gemini-2.5-flash")
    items = await analyzer.analyze("rainy tokyo night")

    assert captured["model"] == "gemini/gemini-2.5-flash"
    assert captured["response_format"] is AnalysisResponse
    messages = captured["messages"]
    assert isinstance(messages, list)
    assert messages[0] == {"role": "system", "content": _ANALYSIS_PROMPT}
    assert messages[1] == {"role": "user", "content": "rainy tokyo night"}
    assert items is not None
    assert [(item.text, item.category) for item in items] == [
        ("Dusty Kick Loop", Category.BEAT),
        ("Round Sub Bass", Category.BASS),
        ("Tape Hiss", Category.TEXTURE),
    ]


@pytest.mark.asyncio
async def test_litellm_kwargs_forwarded(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: dict[str, object] = {}

    async def fake_acompletion(**kwargs: object) -> object:
        captured.update(kwargs)
        return _reply('{"notes": [{"note": "C4", "time": 0, "duration": 0.5}]}')

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)

    generator = LiteLLMNoteGenerator(
        temperature=0.4,
        api_key="sk-test",
        litellm_kwargs={"timeout": 42},
    )
    await generator.generate("a sunny melody")

    assert captured["timeout"] == 42
    assert captured["temperature"] == 0.4
    assert captured["api_key"] == "sk-test"
    assert captured["response_format"] is NotesResponse


def test_reserved_kwargs_rejected() -> None:
    with pytest.raises(PromptDjError):
        LiteLLMPromptAnalyzer(litellm_kwargs={"messages": []})


@pytest.mark.asyncio
async def test_analyzer_non_json_error_includes_snippet(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def fake_acompletion(**kwargs: object) -> object:
        return _reply("not json output")

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)

    with pytest.raises(AnalysisError) as excinfo:
        await LiteLLMPromptAnalyzer().analyze("rainy tokyo night")

    assert "not json output" in str(excinfo.value)


@pytest.mark.asyncio
async def test_analyzer_wraps_transport_errors(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def fake_acompletion(**kwargs: object) -> object:
        raise RuntimeError("rate limited")

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)

    with pytest.raises(AnalysisError, match="rate limited"):
        await LiteLLMPromptAnalyzer().analyze("rainy tokyo night")


@pytest.mark.asyncio
async def test_analyzer_returns_none_without_usable_items(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def fake_acompletion(**kwargs: object) -> object:
        return _reply('{"prompts": [{"text": "Kazoo", "category": "vocals"}]}')

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)

    assert await LiteLLMPromptAnalyzer().analyze("rainy tokyo night") is None


def test_parse_analysis_extracts_embedded_json() -> None:
    content = 'Sure! Here you go: {"prompts": [{"text": "  Lazy Rhodes  ", "category": "harmony"}]}'
    items = parse_analysis(content)
    assert [(item.text, item.category) for item in items] == [("Lazy Rhodes", Category.HARMONY)]


def test_parse_analysis_skips_malformed_items() -> None:
    content = json.dumps(
        {
            "prompts": [
                {"text": "", "category": "beat"},
                {"category": "bass"},
                "loose string",
                {"text": "Airy Flute", "category": "melody", "mood": "calm"},
            ]
        }
    )
    items = parse_analysis(content)
    assert [item.text for item in items] == ["Airy Flute"]


def test_parse_analysis_requires_prompt_list() -> None:
    with pytest.raises(AnalysisError):
        parse_analysis('{"items": []}')


def test_parse_notes_sorts_and_skips_bad_rows() -> None:
    content = json.dumps(
        {
            "notes": [
                {"note": "E4", "time": 1.0, "duration": 0.5},
                {"note": "C4", "time": 0.0, "duration": 0.5},
                {"note": "D4", "time": -1.0, "duration": 0.5},
                {"note": "F4", "time": 2.0, "duration": 0},
            ]
        }
    )
    notes = parse_notes(content)
    assert [note.note for note in notes] == ["C4", "E4"]


def test_parse_notes_non_json() -> None:
    with pytest.raises(NoteGenerationError):
        parse_notes("la la la")
