"""Reporter hooks invoked inline by the playback engine."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import IO, List, Optional, Sequence

from recording.models import ActionBase

from .executors import ActionOutcome
from .result import ActionError, RunResult

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunInfo:
    run_id: str
    test_name: str
    browser: str
    start_url: str
    total_actions: int
    warnings: Sequence[str] = ()


class Reporter:
    """Base reporter; every hook is a no-op.

    Hooks run synchronously in action order, so a slow reporter slows the run.
    Return values are ignored.
    """

    def on_start(self, info: RunInfo) -> None:
        pass

    def on_action_start(self, action: ActionBase, index: int) -> None:
        pass

    def on_action_success(self, action: ActionBase, index: int, duration_ms: float, outcome: ActionOutcome) -> None:
        pass

    def on_action_error(self, action: ActionBase, index: int, error: ActionError, duration_ms: float) -> None:
        pass

    def on_action_skipped(self, action: ActionBase, index: int, reason: str) -> None:
        pass

    def on_complete(self, result: RunResult) -> None:
        pass


NullReporter = Reporter


class CompositeReporter(Reporter):
    """Fan events out to several reporters in registration order."""

    def __init__(self, reporters: Sequence[Reporter] = ()) -> None:
        self.reporters: List[Reporter] = list(reporters)

    def add(self, reporter: Reporter) -> None:
        self.reporters.append(reporter)

    def _each(self, hook: str, *args) -> None:
        for reporter in self.reporters:
            try:
                getattr(reporter, hook)(*args)
            except Exception:
                log.exception("Reporter %s failed in %s", type(reporter).__name__, hook)

    def on_start(self, info: RunInfo) -> None:
        self._each("on_start", info)

    def on_action_start(self, action: ActionBase, index: int) -> None:
        self._each("on_action_start", action, index)

    def on_action_success(self, action: ActionBase, index: int, duration_ms: float, outcome: ActionOutcome) -> None:
        self._each("on_action_success", action, index, duration_ms, outcome)

    def on_action_error(self, action: ActionBase, index: int, error: ActionError, duration_ms: float) -> None:
        self._each("on_action_error", action, index, error, duration_ms)

    def on_action_skipped(self, action: ActionBase, index: int, reason: str) -> None:
        self._each("on_action_skipped", action, index, reason)

    def on_complete(self, result: RunResult) -> None:
        self._each("on_complete", result)


class ConsoleReporter(Reporter):
    """Human-readable progress lines for terminal runs."""

    def __init__(self, stream: Optional[IO[str]] = None, *, verbose: bool = False) -> None:
        self.stream = stream or sys.stdout
        self.verbose = verbose
        self._total = 0

    def _write(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def on_start(self, info: RunInfo) -> None:
        self._total = info.total_actions
        self._write(f"Running {info.test_name or info.run_id} on {info.browser} ({info.total_actions} actions)")
        self._write(f"  start url: {info.start_url}")
        for warning in info.warnings:
            self._write(f"  warning: {warning}")

    def on_action_start(self, action: ActionBase, index: int) -> None:
        if self.verbose:
            self._write(f"[{index}/{self._total}] {action.action_name} {action.id} ...")

    def on_action_success(self, action: ActionBase, index: int, duration_ms: float, outcome: ActionOutcome) -> None:
        mark = "~" if outcome.partial else "ok"
        self._write(f"[{index}/{self._total}] {mark} {action.action_name} {action.id} ({duration_ms:.0f}ms)")
        for warning in outcome.warnings:
            self._write(f"    {warning}")

    def on_action_error(self, action: ActionBase, index: int, error: ActionError, duration_ms: float) -> None:
        self._write(f"[{index}/{self._total}] FAIL {action.action_name} {action.id} ({duration_ms:.0f}ms): {error.message}")
        if error.screenshot_path:
            self._write(f"    screenshot: {error.screenshot_path}")

    def on_action_skipped(self, action: ActionBase, index: int, reason: str) -> None:
        self._write(f"[{index}/{self._total}] skip {action.action_name} {action.id}: {reason}")

    def on_complete(self, result: RunResult) -> None:
        self._write(
            f"{result.status.upper()}: {result.actions_executed}/{result.actions_total} executed, "
            f"{result.actions_failed} failed, {result.actions_skipped} skipped in {result.duration_ms / 1000:.1f}s"
        )
        if result.error:
            self._write(f"  {result.error}")

