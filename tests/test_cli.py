from __future__ import annotations

import json
from types import SimpleNamespace

import litellm
import pytest

from promptdj.cli import build_parser, main
from promptdj.logging_utils import LOG_DIR_ENV


def _reply(content: str) -> object:
    message = SimpleNamespace(content=content)
    choice = SimpleNamespace(message=message)
    return SimpleNamespace(choices=[choice])


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_profiles_lists_keys(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["profiles"]) == 0
    out = capsys.readouterr().out
    assert "lofi:" in out
    assert "techno:" in out


def test_archetypes_table(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["archetypes"]) == 0
    out = capsys.readouterr().out
    assert "groove" in out
    assert "breakdown" in out


def test_randomize_prints_mix(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["randomize", "--seed", "3", "--archetype", "minimal"]) == 0
    assert "archetype: minimal" in capsys.readouterr().out

    assert main(["randomize", "--seed", "3", "--policy", "lofi", "--profile", "techno"]) == 0
    assert "policy: lofi" in capsys.readouterr().out


def test_run_headless_session(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["run", "--seconds", "0.05", "--seed", "1"]) == 0
    out = capsys.readouterr().out
    assert "init" in out
    assert "autopilot" in out
    assert "Auto-pilot fired 1 time(s)" in out


def test_analyze_prints_profile(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    payload = {"prompts": [{"text": "Dusty Kick", "category": "beat"}]}

    async def fake_acompletion(**kwargs: object) -> object:
        return _reply(json.dumps(payload))

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)

    assert main(["analyze", "rainy city", "--model", "openai/gpt-4o-mini"]) == 0
    assert "Dusty Kick" in capsys.readouterr().out


def test_analyze_failure_is_logged(
    tmp_path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def fake_acompletion(**kwargs: object) -> object:
        raise RuntimeError("no network")

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))

    assert main(["analyze", "rainy city"]) == 1

    assert "no network" in capsys.readouterr().err
    assert "promptdj CLI failed" in (tmp_path / "promptdj.log").read_text(encoding="utf-8")
