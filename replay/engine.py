"""Playback engine: replays a recording against a live browser."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from recording.models import ActionBase, InputAction, NavigationAction, Recording, SubmitAction
from recording.parser import normalize_recording
from recording.registry import registry

from .browser import BrowserSession
from .config import RunOptions, ensure_screenshot_dir
from .errors import (
    ActionVerificationError,
    ElementNotFoundError,
    NavigationTimeoutError,
    PlaybackCancelledError,
    PlaybackError,
    is_fatal_browser_error,
)
from .executors import ActionContext, ActionOutcome, check_exhaustive, executor_for
from .navigation_analyzer import apply_insertions, detect_missing_prerequisites, preprocess_recording
from .navigation_history import urls_match
from .page_stability import wait_for_page_ready
from .reporter import CompositeReporter, Reporter, RunInfo
from .result import ActionError, RunAccumulator, RunResult, SkippedAction

log = logging.getLogger(__name__)

DUPLICATE_WINDOW_MS = 500

RETRYABLE_ERRORS = (PlaywrightError, NavigationTimeoutError, ActionVerificationError)

SessionFactory = Callable[[RunOptions, Recording], Any]


class PlaybackState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def backoff_delay(base: float, attempt: int) -> float:
    """Delay in seconds before retry ``attempt`` (0-based)."""

    return base * (2 ** attempt)


def screenshot_name(run_id: str, browser: str, index: int, action_id: str) -> str:
    return f"{run_id}-{browser}-{index:03d}-{action_id}.png"


def _is_duplicate(previous: ActionBase, current: ActionBase) -> bool:
    if type(previous) is not type(current):
        return False
    selector = current.target_selector()
    if selector is None or selector != previous.target_selector():
        return False
    if isinstance(current, InputAction) and current.value != previous.value:
        return False
    return 0 <= current.timestamp - previous.timestamp < DUPLICATE_WINDOW_MS


def drop_duplicates(actions: List[ActionBase]) -> Tuple[List[ActionBase], List[str]]:
    kept: List[ActionBase] = []
    notes: List[str] = []
    for action in actions:
        if kept and _is_duplicate(kept[-1], action):
            notes.append(f"[{action.id}] Dropped duplicate {action.action_name} of {kept[-1].id}")
            continue
        kept.append(action)
    return kept, notes


class PlaybackEngine:
    """Runs one recording; an instance is single-use.

    State moves ``IDLE -> RUNNING -> COMPLETED | FAILED | CANCELLED``.  Each
    action is resolved and executed by the executor registered for its model,
    retried on transient errors with exponential backoff, and its outcome is
    accumulated into the :class:`RunResult` returned by :meth:`execute`.
    """

    def __init__(
        self,
        options: Optional[RunOptions] = None,
        reporter: Optional[Reporter] = None,
        *,
        session_factory: Optional[SessionFactory] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        check_exhaustive(registry.models())
        self.options = options or RunOptions()
        self.reporter = CompositeReporter([reporter] if reporter is not None else [])
        self.run_id = self.options.run_id or f"run-{uuid.uuid4().hex[:12]}"
        self.state = PlaybackState.IDLE
        self._session_factory = session_factory or BrowserSession.for_recording
        self._sleep = sleep

    def prepare(self, recording: Recording) -> Tuple[Recording, List[str]]:
        """Normalise, correct navigation labels, handle prerequisites and drop duplicates."""

        warnings: List[str] = []
        prepared = normalize_recording(recording)

        preprocessed = preprocess_recording(prepared)
        prepared = preprocessed.recording
        warnings.extend(preprocessed.warnings)

        insertions = detect_missing_prerequisites(prepared)
        if insertions and self.options.insert_prerequisite_hovers:
            prepared, notes = apply_insertions(prepared, insertions)
            warnings.extend(notes)
        else:
            warnings.extend(
                f"Missing prerequisite before action {item.before_index + 1}: {item.reason}" for item in insertions
            )

        actions, notes = drop_duplicates(list(prepared.actions))
        warnings.extend(notes)
        return prepared.with_actions(actions), warnings

    async def execute(self, recording: Recording) -> RunResult:
        if self.state is not PlaybackState.IDLE:
            raise RuntimeError("PlaybackEngine instances are single-use")
        self.state = PlaybackState.RUNNING

        prepared, warnings = self.prepare(recording)
        acc = RunAccumulator(
            run_id=self.run_id,
            test_name=prepared.test_name,
            browser=self.options.browser,
            actions_total=len(prepared.actions),
            warnings=warnings,
        )
        self.reporter.on_start(
            RunInfo(
                run_id=self.run_id,
                test_name=prepared.test_name,
                browser=self.options.browser,
                start_url=prepared.url,
                total_actions=acc.actions_total,
                warnings=tuple(warnings),
            )
        )
        log.info("Run %s: %d actions on %s", self.run_id, acc.actions_total, self.options.browser)

        try:
            self._check_cancelled()
            if self.options.effective_screenshot_mode != "never":
                ensure_screenshot_dir(self.options)
            async with self._session_factory(self.options, prepared) as session:
                ctx = ActionContext(session.page, self.options)
                await self._open_start_url(ctx, prepared.url)
                await self._run_actions(ctx, list(prepared.actions), acc)
        except PlaybackCancelledError as exc:
            log.info("Run %s cancelled: %s", self.run_id, exc)
            acc.cancelled = True
            acc.error = str(exc)
        except (PlaybackError, PlaywrightError) as exc:
            log.error("Run %s aborted: %s", self.run_id, exc)
            acc.halted = True
            acc.error = str(exc)
        except asyncio.CancelledError:
            self.state = PlaybackState.CANCELLED
            raise

        result = acc.freeze()
        if result.status == "cancelled":
            self.state = PlaybackState.CANCELLED
        elif result.status == "failed":
            self.state = PlaybackState.FAILED
        else:
            self.state = PlaybackState.COMPLETED
        self.reporter.on_complete(result)
        log.info(
            "Run %s finished %s: %d executed, %d failed, %d skipped",
            self.run_id,
            result.status,
            result.actions_executed,
            result.actions_failed,
            result.actions_skipped,
        )
        return result

    def _check_cancelled(self) -> None:
        token = self.options.cancel_token
        if token is not None:
            token.raise_if_cancelled()

    async def _open_start_url(self, ctx: ActionContext, url: str) -> None:
        try:
            await ctx.page.goto(url, wait_until="domcontentloaded", timeout=self.options.navigation_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(f"Start URL {url} did not load: {exc}", details={"url": url}) from exc
        ctx.history.record(ctx.page.url)
        await wait_for_page_ready(ctx.page)

    async def _run_actions(self, ctx: ActionContext, actions: List[ActionBase], acc: RunAccumulator) -> None:
        mode = self.options.effective_screenshot_mode
        previous: Optional[ActionBase] = None
        for index, action in enumerate(actions, start=1):
            self._check_cancelled()
            await self._pace(previous, action)
            self._check_cancelled()
            previous = action

            self.reporter.on_action_start(action, index)
            started = time.monotonic()
            try:
                await self._correct_page_state(ctx, action)
                outcome = await self._execute_with_retry(ctx, action)
            except ElementNotFoundError as exc:
                if action.skippable:
                    reason = f"Optional element not found: {exc}"
                    acc.skipped.append(
                        SkippedAction(action_id=action.id, action_type=action.action_name, index=index, reason=reason)
                    )
                    self.reporter.on_action_skipped(action, index, reason)
                    continue
                if not await self._record_failure(ctx, acc, action, index, exc, started, mode):
                    return
                continue
            except (PlaybackError, PlaywrightError) as exc:
                if not await self._record_failure(ctx, acc, action, index, exc, started, mode):
                    return
                continue

            acc.executed += 1
            if outcome.partial:
                acc.partial_actions.append(action.id)
            if mode == "always":
                await self._capture(ctx, acc, index, action)
            self.reporter.on_action_success(action, index, (time.monotonic() - started) * 1000, outcome)

    async def _record_failure(
        self,
        ctx: ActionContext,
        acc: RunAccumulator,
        action: ActionBase,
        index: int,
        exc: Exception,
        started: float,
        mode: str,
    ) -> bool:
        """Record a failed action; returns False when the run must stop."""

        duration = (time.monotonic() - started) * 1000
        fatal = is_fatal_browser_error(exc)
        shot = None
        if mode in ("on-failure", "always") and not fatal:
            shot = await self._capture(ctx, acc, index, action)
        error = ActionError(
            action_id=action.id,
            action_type=action.action_name,
            index=index,
            message=str(exc),
            code=getattr(exc, "code", "BROWSER_ERROR"),
            screenshot_path=shot,
            details=dict(getattr(exc, "details", {}) or {}),
        )
        acc.errors.append(error)
        acc.failed += 1
        log.warning("Action %d (%s %s) failed: %s", index, action.action_name, action.id, exc)
        self.reporter.on_action_error(action, index, error, duration)

        if fatal:
            acc.halted = True
            acc.error = f"Browser session lost: {exc}"
            return False
        if not self.options.continue_on_error:
            acc.halted = True
            return False
        return True

    async def _execute_with_retry(self, ctx: ActionContext, action: ActionBase) -> ActionOutcome:
        executor = executor_for(action)
        executor.validate(action)
        attempt = 0
        while True:
            try:
                return await executor.execute(ctx, action)
            except RETRYABLE_ERRORS as exc:
                if attempt >= self.options.max_retries or is_fatal_browser_error(exc):
                    raise
                delay = backoff_delay(self.options.retry_backoff_base, attempt)
                log.info(
                    "Retrying %s %s in %.2fs (attempt %d/%d): %s",
                    action.action_name,
                    action.id,
                    delay,
                    attempt + 1,
                    self.options.max_retries,
                    exc,
                )
                await self._sleep(delay)
                attempt += 1
            except PlaybackError:
                raise
            except (ValueError, TypeError) as exc:
                raise PlaybackError(str(exc), code="UNEXPECTED") from exc

    async def _pace(self, previous: Optional[ActionBase], action: ActionBase) -> None:
        """Reproduce the recorded gap between actions, scaled by the timing mode."""

        if previous is None:
            return
        gap = max(0.0, action.timestamp - previous.timestamp) * self.options.timing_multiplier
        delay_ms = min(gap, self.options.max_action_delay_ms)
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    async def _correct_page_state(self, ctx: ActionContext, action: ActionBase) -> None:
        """Return to the recorded page when an element action runs on the wrong URL."""

        if not self.options.auto_correct_page_state or not action.url:
            return
        if isinstance(action, (NavigationAction, SubmitAction)) or action.target_selector() is None:
            return
        current = ctx.page.url
        if urls_match(current, action.url):
            return
        log.info("Page is %s but %s was recorded on %s; navigating back", current, action.id, action.url)
        await ctx.history.navigate(ctx.page, action.url, timeout_ms=self.options.navigation_timeout_ms)
        await wait_for_page_ready(ctx.page)

    async def _capture(self, ctx: ActionContext, acc: RunAccumulator, index: int, action: ActionBase) -> Optional[str]:
        path = Path(self.options.screenshot_dir) / screenshot_name(self.run_id, self.options.browser, index, action.id)
        try:
            await ctx.page.screenshot(path=str(path))
        except PlaywrightError as exc:
            log.warning("Screenshot for %s failed: %s", action.id, exc)
            return None
        acc.screenshots.append(str(path))
        return str(path)


async def run_recording(
    recording: Recording,
    options: Optional[RunOptions] = None,
    reporter: Optional[Reporter] = None,
) -> RunResult:
    return await PlaybackEngine(options, reporter).execute(recording)
