"""Priority-ordered selector resolution against a live page."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from playwright.async_api import Error as PlaywrightError, Frame, Locator, Page

from recording.models import Selector, StructuralPosition
from recording.resolution import ResolvedElement, StrategyAttempt

from .errors import ElementNotFoundError

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 250

LocatorBuilder = Callable[[Any, Any], Locator]


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _by_id(page: Page | Frame, value: str) -> Locator:
    return page.locator(f'[id="{_quote(value)}"]')


def _by_test_id(page: Page | Frame, value: str) -> Locator:
    return page.get_by_test_id(value)


def _by_aria_label(page: Page | Frame, value: str) -> Locator:
    return page.get_by_label(value)


def _by_name(page: Page | Frame, value: str) -> Locator:
    return page.locator(f'[name="{_quote(value)}"]')


def _by_css(page: Page | Frame, value: str) -> Locator:
    return page.locator(value)


def _by_xpath(page: Page | Frame, value: str) -> Locator:
    return page.locator(f"xpath={value}")


def _by_text(page: Page | Frame, value: str) -> Locator:
    return page.get_by_text(value, exact=True)


def _by_text_contains(page: Page | Frame, value: str) -> Locator:
    return page.get_by_text(value, exact=False)


def _by_position(page: Page | Frame, value: StructuralPosition | str) -> Locator:
    css = value.as_css() if isinstance(value, StructuralPosition) else value
    return page.locator(css)


# Order here is irrelevant; the selector's own priority decides which run first.
STRATEGY_CHAIN: Dict[str, LocatorBuilder] = {
    "id": _by_id,
    "dataTestId": _by_test_id,
    "ariaLabel": _by_aria_label,
    "name": _by_name,
    "css": _by_css,
    "xpath": _by_xpath,
    "xpathAbsolute": _by_xpath,
    "text": _by_text,
    "textContains": _by_text_contains,
    "position": _by_position,
}


def _display(value: Any) -> str:
    if isinstance(value, StructuralPosition):
        return value.as_css()
    return str(value)


class SelectorResolver:
    """Resolve a :class:`Selector` to exactly one visible element.

    Strategies are tried in the selector's priority order.  A strategy wins
    only when it matches a single visible element; zero matches, several
    matches or a hidden match all fall through to the next strategy, so an
    ambiguous page never silently resolves to the first element in DOM order.
    Passes repeat until ``timeout_ms`` is spent, with at least one pass.
    """

    def __init__(
        self,
        page: Page | Frame,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        strategies: Optional[Mapping[str, LocatorBuilder]] = None,
    ) -> None:
        self.page = page
        self.poll_interval_ms = poll_interval_ms
        self.strategies: Mapping[str, LocatorBuilder] = strategies or STRATEGY_CHAIN

    async def resolve(self, selector: Selector, timeout_ms: int) -> ResolvedElement:
        priority = selector.effective_priority()
        if not priority:
            raise ElementNotFoundError("Selector has no usable strategies")

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + max(timeout_ms, 0) / 1000
        attempts: List[StrategyAttempt] = []
        passes = 0
        while True:
            passes += 1
            attempts = []
            for strategy in priority:
                attempt, locator = await self._try_strategy(selector, strategy)
                attempts.append(attempt)
                if locator is not None:
                    elapsed = (loop.time() - started) * 1000
                    log.debug("Resolved %s via %s after %d pass(es)", attempt.value, strategy, passes)
                    return ResolvedElement(
                        selector=selector,
                        strategy=strategy,
                        value=attempt.value,
                        locator=locator,
                        attempts=attempts,
                        elapsed_ms=elapsed,
                    )
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.poll_interval_ms / 1000, remaining))

        tried = ", ".join(f"{a.strategy}={a.value} ({a.outcome})" for a in attempts)
        raise ElementNotFoundError(
            f"Element not found after {passes} pass(es) within {timeout_ms}ms; tried {tried}",
            attempts=attempts,
        )

    async def _try_strategy(self, selector: Selector, strategy: str) -> Tuple[StrategyAttempt, Optional[Locator]]:
        value = selector.value_for(strategy)
        shown = _display(value)
        builder = self.strategies.get(strategy)
        if builder is None:
            return StrategyAttempt(strategy, shown, 0, "unsupported"), None
        try:
            locator = builder(self.page, value)
            count = await locator.count()
        except PlaywrightError as exc:
            log.debug("Strategy %s=%s raised: %s", strategy, shown, exc)
            return StrategyAttempt(strategy, shown, 0, "error", error=str(exc)), None

        if count == 0:
            return StrategyAttempt(strategy, shown, 0, "no-match"), None
        if count > 1:
            log.debug("Strategy %s=%s is ambiguous (%d matches)", strategy, shown, count)
            return StrategyAttempt(strategy, shown, count, "ambiguous"), None
        try:
            visible = await locator.is_visible()
        except PlaywrightError as exc:
            return StrategyAttempt(strategy, shown, count, "error", error=str(exc)), None
        if not visible:
            return StrategyAttempt(strategy, shown, count, "hidden"), None
        return StrategyAttempt(strategy, shown, count, "matched"), locator
