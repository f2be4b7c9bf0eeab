from __future__ import annotations

import argparse
import asyncio
import logging

import numpy as np
from rich.console import Console
from rich.table import Table

from .config import load_config
from .console import Spinner, render_error
from .engine import EngineHooks, PromptDjEngine
from .logging_utils import configure_logging, debug_enabled, log_exception
from .profiles import PROFILES, distribute_analysis, resolve_profile
from .prompts import PromptSet, PromptStore, WeightsChanged
from .randomizer import ARCHETYPES, POLICIES, randomize_archetype, randomize_generic

_LOGGER = logging.getLogger("promptdj.cli")
_CONSOLE = Console()


def _prompt_table(prompts: PromptSet, *, title: str | None = None) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Category")
    table.add_column("Prompt")
    table.add_column("Weight", justify="right")
    for prompt in prompts.prompts:
        style = None if prompt.active else "dim"
        table.add_row(
            str(prompt.index),
            prompt.category.value,
            f"[{prompt.color}]{prompt.text}[/]",
            f"{prompt.weight:.2f}",
            style=style,
        )
    return table


def _format_change(event: WeightsChanged) -> str:
    active = [f"{item.text}={item.weight:.2f}" for item in event.prompts if item.weight > 0]
    return f"[bold]{event.reason}[/bold] " + (", ".join(active) or "(silence)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promptdj")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("profiles", help="List prompt profiles.")
    sub.add_parser("archetypes", help="List randomization archetypes.")

    randomize = sub.add_parser("randomize", help="Randomize a prompt mix and print it.")
    randomize.add_argument("--archetype", type=str, default=None)
    randomize.add_argument("--policy", choices=sorted(POLICIES), default="energetic")
    randomize.add_argument("--profile", type=str, default=None)
    randomize.add_argument("--seed", type=int, default=None)

    run = sub.add_parser("run", help="Run a headless auto-pilot session.")
    run.add_argument("--seconds", type=float, default=120.0)
    interval = run.add_mutually_exclusive_group()
    interval.add_argument("--interval", type=float, default=None)
    interval.add_argument("--random-interval", action="store_true")
    run.add_argument("--profile", type=str, default=None)
    run.add_argument("--seed", type=int, default=None)

    analyze = sub.add_parser("analyze", help="Build a prompt profile from a song, artist or mood.")
    analyze.add_argument("query", type=str)
    analyze.add_argument("--model", type=str, default=None)
    return parser


def _randomize(args: argparse.Namespace) -> int:
    config = load_config()
    rng = np.random.default_rng(args.seed)
    profile = resolve_profile(args.profile or config.profile)
    store = PromptStore(profile, config.initial_active, rng=rng)
    if args.archetype:
        archetype, weights = randomize_archetype(store.prompts, args.archetype, rng=rng)
        title = f"archetype: {archetype.name}"
    else:
        weights = randomize_generic(store.prompts, POLICIES[args.policy], rng=rng)
        title = f"policy: {args.policy}"
    store.apply_weights(weights, reason="randomize")
    _CONSOLE.print(_prompt_table(store.prompts, title=title))
    return 0


async def _run_session(args: argparse.Namespace) -> None:
    overrides: dict[str, object] = {}
    if args.profile:
        overrides["profile"] = args.profile
    if args.interval is not None:
        overrides["autopilot_interval"] = args.interval
    if args.random_interval:
        overrides["autopilot_mode"] = "random"
    config = load_config(**overrides)

    hooks = EngineHooks(
        on_weights_changed=lambda event: _CONSOLE.print(_format_change(event)),
        on_notification=lambda note: _CONSOLE.print(f"[yellow]{note.message}[/yellow]"),
    )
    engine = PromptDjEngine(config, hooks=hooks, rng=np.random.default_rng(args.seed))
    engine.set_playback_state("playing")
    engine.start()
    engine.autopilot.enable()
    try:
        await asyncio.sleep(args.seconds)
    finally:
        engine.close()
    _CONSOLE.print(
        f"Auto-pilot fired {engine.autopilot.fired} time(s); "
        f"{engine.animation.frames} frame(s) simulated."
    )


def _analyze(args: argparse.Namespace) -> int:
    from .providers.litellm import LiteLLMPromptAnalyzer

    config = load_config()
    analyzer = LiteLLMPromptAnalyzer(args.model or config.llm_model)
    with Spinner(f"Analyzing {args.query!r}"):
        items = asyncio.run(analyzer.analyze(args.query))
    if not items:
        _CONSOLE.print(f"No prompts found for {args.query!r}.")
        return 1
    profile = distribute_analysis(items, fallback=resolve_profile(config.profile))
    store = PromptStore(profile, config.initial_active)
    _CONSOLE.print(_prompt_table(store.prompts, title=args.query))
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "profiles":
            for key, profile in PROFILES.items():
                preview = ", ".join(entry.text for entry in profile.entries[:4])
                _CONSOLE.print(f"{key}: {preview}, ...")
            return 0

        if args.command == "archetypes":
            table = Table(title="Archetypes")
            table.add_column("Name")
            table.add_column("Counts")
            table.add_column("Weights")
            for archetype in ARCHETYPES:
                counts = ", ".join(
                    f"{category.value}={count}" for category, count in archetype.counts.items()
                )
                low, high = archetype.weight_range
                table.add_row(archetype.name, counts, f"{low:.1f}-{high:.1f}")
            _CONSOLE.print(table)
            return 0

        if args.command == "randomize":
            return _randomize(args)

        if args.command == "run":
            asyncio.run(_run_session(args))
            return 0

        if args.command == "analyze":
            return _analyze(args)

        parser.print_help()
        return 1
    except Exception as exc:
        _LOGGER.warning("promptdj CLI failed: %s", exc, exc_info=debug_enabled())
        log_exception("promptdj CLI", exc)
        render_error("promptdj CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
