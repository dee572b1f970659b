"""Command line entry point for replaying recordings."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from recording.analyzer import analyze_recording
from recording.parser import RecordingFormatError, load_recording

from .cancellation import CancellationToken
from .config import BROWSERS, SCREENSHOT_MODES, TIMING_MODES, load_options
from .engine import PlaybackEngine
from .reporter import CompositeReporter, ConsoleReporter, Reporter
from .result import RunResult
from .structured_logging import JsonlReporter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="replay", description="Replay recorded browser sessions with Playwright")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Replay a recording in a real browser")
    run.add_argument("recording", type=Path, help="Path to recording JSON file")
    run.add_argument("--config", type=Path, default=None, help="TOML file with a [replay] table")
    run.add_argument("--browser", choices=BROWSERS, default=None)
    run.add_argument("--headed", action="store_true", help="Show the browser window")
    run.add_argument("--timeout", type=int, default=None, help="Per-action timeout in milliseconds")
    run.add_argument("--continue-on-error", action="store_true", default=None)
    run.add_argument("--screenshots", choices=SCREENSHOT_MODES, default=None, help="Screenshot policy")
    run.add_argument("--screenshot-dir", type=Path, default=None)
    run.add_argument("--timing", choices=sorted(TIMING_MODES), default=None, help="Replay pacing")
    run.add_argument("--run-id", default=None)
    run.add_argument("--events", type=Path, default=None, help="Write JSON-lines events to this file")
    run.add_argument("--output", type=Path, default=None, help="Write the run result JSON to this file")

    validate = sub.add_parser("validate", help="Check a recording against the schema")
    validate.add_argument("recording", type=Path)

    info = sub.add_parser("info", help="Show statistics about a recording")
    info.add_argument("recording", type=Path)
    info.add_argument("--json", action="store_true", help="Print the analysis as JSON")
    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "browser": args.browser,
        "action_timeout_ms": args.timeout,
        "continue_on_error": args.continue_on_error,
        "screenshot_mode": args.screenshots,
        "screenshot_dir": args.screenshot_dir,
        "timing_mode": args.timing,
        "run_id": args.run_id,
    }
    if args.headed:
        overrides["headless"] = False
    return {key: value for key, value in overrides.items() if value is not None}


async def _replay(args: argparse.Namespace) -> RunResult:
    recording = load_recording(args.recording)
    token = CancellationToken()
    options = load_options(args.config, cancel_token=token, **_overrides(args))

    reporters: List[Reporter] = [ConsoleReporter(verbose=args.verbose)]
    if args.events is not None:
        reporters.append(JsonlReporter(args.events))

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, token.cancel, f"Interrupted by signal {signum.name}")

    engine = PlaybackEngine(options, CompositeReporter(reporters))
    return await engine.execute(recording)


def _cmd_run(args: argparse.Namespace) -> int:
    result = asyncio.run(_replay(args))
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
    return 0 if result.ok else 1


def _cmd_validate(args: argparse.Namespace) -> int:
    recording = load_recording(args.recording, normalize=False)
    print(f"OK: {args.recording} ({len(recording.actions)} actions, schema v{recording.schema_version})")
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    recording = load_recording(args.recording)
    analysis = analyze_recording(recording, args.recording)
    if args.json:
        print(analysis.model_dump_json(indent=2))
        return 0

    meta = analysis.metadata
    print(f"Recording: {analysis.file}")
    print(f"  Test:      {meta.test_name}")
    print(f"  ID:        {meta.recording_id}")
    print(f"  Start URL: {meta.start_url}")
    print(f"  Schema:    v{meta.schema_version}")
    print(f"  Viewport:  {analysis.viewport.width}x{analysis.viewport.height} ({analysis.viewport.category})")
    stats = analysis.statistics
    print(f"Actions: {stats.total}")
    for name, count in sorted(stats.by_type.items(), key=lambda item: -item[1]):
        print(f"  {name:<16} {count:>4}  ({stats.percentages[name]:.1f}%)")
    gaps = analysis.timing.gaps
    print(f"Timing: span {analysis.timing.action_span_ms / 1000:.1f}s, median gap {gaps.median:.0f}ms, max gap {gaps.max:.0f}ms")
    nav = analysis.navigation
    print(f"Navigation: {nav.unique_pages} page(s), {nav.transitions} transition(s), {nav.flow_type}")
    return 0


COMMANDS = {"run": _cmd_run, "validate": _cmd_validate, "info": _cmd_info}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return COMMANDS[args.command](args)
    except FileNotFoundError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except RecordingFormatError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        parser.error(str(exc))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
