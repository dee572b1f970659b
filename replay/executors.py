"""One executor per recorded action kind."""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Optional, Type

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from recording.models import (
    ActionBase,
    CheckpointAction,
    ClickAction,
    HoverAction,
    InputAction,
    KeypressAction,
    ModalLifecycleAction,
    NavigationAction,
    ScrollAction,
    SelectAction,
    Selector,
    SubmitAction,
)
from recording.resolution import ResolvedElement

from .config import RunOptions
from .errors import ActionVerificationError, ElementNotFoundError, MalformedActionError, NavigationTimeoutError
from .navigation_history import NavigationHistory, urls_match
from .page_stability import settle, wait_for_page_ready
from .safe_interactions import safe_click, safe_fill, safe_hover, safe_select, safe_type
from .selector_resolver import SelectorResolver

log = logging.getLogger(__name__)

_TEXT_INPUT_TAGS = {"input", "textarea"}
_UNVERIFIABLE_INPUT_TYPES = {"file", "checkbox", "radio", "color", "range"}

_SUBMIT_SCRIPT = """
(el) => {
    const form = el.tagName === 'FORM' ? el : el.closest('form');
    if (!form) return false;
    if (form.requestSubmit) { form.requestSubmit(); } else { form.submit(); }
    return true;
}
"""


@dataclass(slots=True)
class ActionOutcome:
    status: str = "success"  # success or partial
    details: Dict[str, Any] = field(default_factory=dict)
    resolved: Optional[ResolvedElement] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.status == "partial"

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self.status, "details": self.details}
        if self.resolved is not None:
            payload["resolved"] = {"strategy": self.resolved.strategy, "value": self.resolved.value}
        if self.warnings:
            payload["warnings"] = self.warnings
        return payload


class ActionContext:
    """Live state shared by the executors of one run."""

    def __init__(
        self,
        page: Page,
        options: RunOptions,
        *,
        history: Optional[NavigationHistory] = None,
        resolver: Optional[SelectorResolver] = None,
    ) -> None:
        self.page = page
        self.options = options
        self.history = history or NavigationHistory()
        self.resolver = resolver or SelectorResolver(page, poll_interval_ms=options.locator_poll_interval_ms)

    async def resolve(self, selector: Optional[Selector]) -> ResolvedElement:
        if selector is None:
            raise MalformedActionError("Action has no selector to resolve")
        return await self.resolver.resolve(selector, self.options.action_timeout_ms)

    async def settle(self) -> None:
        await settle(self.options.settle_delay_ms)

    def note_url(self, before: str) -> Optional[str]:
        after = self.page.url
        if after != before:
            self.history.record(after)
            return after
        return None


class ActionExecutor:
    action_type: ClassVar[Type[ActionBase]]

    def validate(self, action: ActionBase) -> None:
        """Reject actions that cannot be replayed; runs before any driver call."""

        if action.__requires_selector__ and action.target_selector() is None:
            raise MalformedActionError(
                f"{action.action_name} action {action.id} has no selector",
                details={"action_id": action.id},
            )

    async def execute(self, ctx: ActionContext, action: Any) -> ActionOutcome:
        raise NotImplementedError


EXECUTORS: Dict[Type[ActionBase], ActionExecutor] = {}


def executes(model: Type[ActionBase]) -> Callable[[Type[ActionExecutor]], Type[ActionExecutor]]:
    def decorator(cls: Type[ActionExecutor]) -> Type[ActionExecutor]:
        cls.action_type = model
        EXECUTORS[model] = cls()
        return cls

    return decorator


def executor_for(action: ActionBase) -> ActionExecutor:
    try:
        return EXECUTORS[type(action)]
    except KeyError as exc:
        raise MalformedActionError(f"No executor for action type {action.action_name!r}") from exc


def check_exhaustive(models: Iterable[Type[ActionBase]]) -> None:
    missing = [model.__action_name__ for model in models if model not in EXECUTORS]
    if missing:
        raise RuntimeError(f"Action kinds without an executor: {', '.join(sorted(missing))}")


@executes(ClickAction)
class ClickExecutor(ActionExecutor):
    async def execute(self, ctx: ActionContext, action: ClickAction) -> ActionOutcome:
        resolved = await ctx.resolve(action.selector)
        before = ctx.page.url
        method = await safe_click(
            resolved.locator,
            timeout=ctx.options.action_timeout_ms,
            button=action.button,
            click_count=action.click_count,
            modifiers=action.modifiers,
        )
        await ctx.settle()
        details: Dict[str, Any] = {"button": action.button, "click_count": action.click_count, "method": method}
        navigated_to = ctx.note_url(before)
        if navigated_to:
            details["navigated_to"] = navigated_to
        return ActionOutcome(details=details, resolved=resolved)


@executes(InputAction)
class InputExecutor(ActionExecutor):
    async def execute(self, ctx: ActionContext, action: InputAction) -> ActionOutcome:
        resolved = await ctx.resolve(action.selector)
        timeout = ctx.options.action_timeout_ms
        if action.simulation_type == "type":
            await safe_type(resolved.locator, action.value, delay_ms=action.typing_delay, timeout=timeout)
        else:
            await safe_fill(resolved.locator, action.value, timeout=timeout)
        await ctx.settle()
        log.debug("Entered %r into %s", action.display_value(), resolved.value)

        details: Dict[str, Any] = {"simulation": action.simulation_type, "value": action.display_value()}
        tag = (action.tag_name or "").lower()
        if tag in _TEXT_INPUT_TAGS and (action.input_type or "").lower() not in _UNVERIFIABLE_INPUT_TYPES:
            current = await resolved.locator.input_value()
            if current != action.value:
                shown = "***" if action.is_sensitive else repr(current)
                raise ActionVerificationError(
                    f"Input value mismatch for {resolved.value}: expected {action.display_value()!r}, got {shown}",
                    details={"strategy": resolved.strategy},
                )
            details["verified"] = True
        return ActionOutcome(details=details, resolved=resolved)


@executes(SelectAction)
class SelectExecutor(ActionExecutor):
    def validate(self, action: SelectAction) -> None:
        super().validate(action)
        if action.selected_value is None and action.selected_text is None and action.selected_index is None:
            raise MalformedActionError(f"select action {action.id} has no value, text or index")

    async def execute(self, ctx: ActionContext, action: SelectAction) -> ActionOutcome:
        resolved = await ctx.resolve(action.selector)
        selected = await safe_select(
            resolved.locator,
            value=action.selected_value,
            label=action.selected_text,
            index=action.selected_index,
            timeout=ctx.options.action_timeout_ms,
        )
        await ctx.settle()
        if action.selected_value is not None:
            current = await resolved.locator.input_value()
            if current != action.selected_value:
                raise ActionVerificationError(
                    f"Selected value mismatch: expected {action.selected_value!r}, got {current!r}",
                    details={"strategy": resolved.strategy},
                )
        return ActionOutcome(details={"selected": selected}, resolved=resolved)


@executes(ScrollAction)
class ScrollExecutor(ActionExecutor):
    """Scroll the window or an element; an unverified offset is a partial outcome."""

    async def execute(self, ctx: ActionContext, action: ScrollAction) -> ActionOutcome:
        target = (action.scroll_x, action.scroll_y)
        selector = action.target_selector()
        resolved: Optional[ResolvedElement] = None
        if selector is None:
            await ctx.page.evaluate("([x, y]) => window.scrollTo(x, y)", list(target))
        else:
            resolved = await ctx.resolve(selector)
            await resolved.locator.evaluate("(el, [x, y]) => { el.scrollLeft = x; el.scrollTop = y; }", list(target))
        await ctx.settle()

        details: Dict[str, Any] = {"target": list(target), "element": "window" if selector is None else resolved.value}
        try:
            if resolved is None:
                actual = await ctx.page.evaluate("() => [window.scrollX, window.scrollY]")
            else:
                actual = await resolved.locator.evaluate("el => [el.scrollLeft, el.scrollTop]")
        except PlaywrightError as exc:
            return ActionOutcome(
                status="partial",
                details=details,
                resolved=resolved,
                warnings=[f"Scroll offset could not be read back: {exc}"],
            )

        details["actual"] = list(actual)
        tolerance = ctx.options.scroll_tolerance_px
        if all(abs(float(got) - want) <= tolerance for got, want in zip(actual, target)):
            return ActionOutcome(details=details, resolved=resolved)
        return ActionOutcome(
            status="partial",
            details=details,
            resolved=resolved,
            warnings=[f"Scroll ended at {list(actual)} instead of {list(target)} (tolerance {tolerance}px)"],
        )


@executes(NavigationAction)
class NavigationExecutor(ActionExecutor):
    def validate(self, action: NavigationAction) -> None:
        if not action.to.strip():
            raise MalformedActionError(f"navigation action {action.id} has no target URL")

    async def execute(self, ctx: ActionContext, action: NavigationAction) -> ActionOutcome:
        page = ctx.page
        details: Dict[str, Any] = {"to": action.to, "trigger": action.navigation_trigger}
        if urls_match(page.url, action.to):
            # An earlier click or submit already performed this navigation.
            with contextlib.suppress(PlaywrightError):
                await page.wait_for_load_state("domcontentloaded", timeout=ctx.options.navigation_timeout_ms)
            ctx.history.record(page.url)
            details["method"] = "already-there"
            return ActionOutcome(details=details)

        details["method"] = await ctx.history.navigate(page, action.to, timeout_ms=ctx.options.navigation_timeout_ms)
        await wait_for_page_ready(page)
        if not urls_match(page.url, action.to):
            raise ActionVerificationError(
                f"Navigation ended at {page.url} instead of {action.to}",
                details={"expected": action.to, "actual": page.url},
            )
        return ActionOutcome(details=details)


@executes(HoverAction)
class HoverExecutor(ActionExecutor):
    async def execute(self, ctx: ActionContext, action: HoverAction) -> ActionOutcome:
        resolved = await ctx.resolve(action.selector)
        await safe_hover(resolved.locator, timeout=ctx.options.action_timeout_ms)
        await ctx.settle()
        return ActionOutcome(details={"dropdown_parent": action.is_dropdown_parent}, resolved=resolved)


@executes(SubmitAction)
class SubmitExecutor(ActionExecutor):
    async def execute(self, ctx: ActionContext, action: SubmitAction) -> ActionOutcome:
        page = ctx.page
        try:
            resolved = await ctx.resolve(action.selector)
        except ElementNotFoundError:
            # The form is gone because the page already moved on.
            if action.url and not urls_match(page.url, action.url):
                return ActionOutcome(details={"already_submitted": True, "url": page.url})
            raise

        before = page.url
        submitted = await resolved.locator.evaluate(_SUBMIT_SCRIPT)
        if not submitted:
            raise ActionVerificationError(f"No form found for {resolved.value}", details={"strategy": resolved.strategy})
        with contextlib.suppress(PlaywrightError):
            await page.wait_for_load_state("domcontentloaded", timeout=ctx.options.navigation_timeout_ms)
        await ctx.settle()
        details: Dict[str, Any] = {"fields": sorted(action.form_data)}
        navigated_to = ctx.note_url(before)
        if navigated_to:
            details["navigated_to"] = navigated_to
        return ActionOutcome(details=details, resolved=resolved)


@executes(KeypressAction)
class KeypressExecutor(ActionExecutor):
    def validate(self, action: KeypressAction) -> None:
        if not action.key:
            raise MalformedActionError(f"keypress action {action.id} has no key")

    async def execute(self, ctx: ActionContext, action: KeypressAction) -> ActionOutcome:
        before = ctx.page.url
        combo = action.key_combo()
        await ctx.page.keyboard.press(combo)
        await ctx.settle()
        details: Dict[str, Any] = {"keys": combo}
        navigated_to = ctx.note_url(before)
        if navigated_to:
            details["navigated_to"] = navigated_to
        return ActionOutcome(details=details)


@executes(CheckpointAction)
class CheckpointExecutor(ActionExecutor):
    """Re-check assertions that held while recording; failed ones are informational."""

    def validate(self, action: CheckpointAction) -> None:
        if action.check_type in ("elementVisible", "elementText") and action.selector is None:
            raise MalformedActionError(f"{action.check_type} checkpoint {action.id} has no selector")

    async def execute(self, ctx: ActionContext, action: CheckpointAction) -> ActionOutcome:
        details: Dict[str, Any] = {"check": action.check_type}
        if not action.passed:
            details["verified"] = False
            return ActionOutcome(details=details)

        page = ctx.page
        if action.check_type == "urlMatch":
            expected = action.expected_url or action.url
            if not urls_match(page.url, expected):
                raise ActionVerificationError(
                    f"URL checkpoint failed: expected {expected}, at {page.url}",
                    details={"expected": expected, "actual": page.url},
                )
            details["verified"] = True
            return ActionOutcome(details=details)

        if action.check_type == "pageLoad":
            try:
                await page.wait_for_load_state("load", timeout=ctx.options.navigation_timeout_ms)
            except PlaywrightTimeoutError as exc:
                raise NavigationTimeoutError(f"Page did not finish loading: {exc}") from exc
            details["verified"] = True
            return ActionOutcome(details=details)

        resolved = await ctx.resolve(action.selector)
        if action.check_type == "elementText" and action.expected_value:
            text = await resolved.locator.inner_text()
            if action.expected_value not in text:
                raise ActionVerificationError(
                    f"Text checkpoint failed: {action.expected_value!r} not in {text[:120]!r}",
                    details={"expected": action.expected_value},
                )
        details["verified"] = True
        return ActionOutcome(details=details, resolved=resolved)


@executes(ModalLifecycleAction)
class ModalLifecycleExecutor(ActionExecutor):
    async def execute(self, ctx: ActionContext, action: ModalLifecycleAction) -> ActionOutcome:
        return ActionOutcome(details={"event": action.event, "informational": True})
