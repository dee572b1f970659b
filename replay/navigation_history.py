"""Per-run history of visited URLs used to replay back/forward navigation."""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from .errors import NavigationTimeoutError

log = logging.getLogger(__name__)

HISTORY_STEP_TIMEOUT_MS = 5000
SETTLE_TIMEOUT_MS = 3000


def urls_match(first: str, second: str) -> bool:
    """Compare host and path only; query strings and fragments are ignored."""

    try:
        a = urlsplit(first)
        b = urlsplit(second)
        if not a.netloc or not b.netloc:
            return first == second
        return a.hostname == b.hostname and (a.path or "/") == (b.path or "/")
    except ValueError:
        return first == second


@dataclass(frozen=True, slots=True)
class NavigationPlan:
    method: str  # go_back, go_forward or goto
    distance: int = 0


class NavigationHistory:
    def __init__(self) -> None:
        self._stack: List[str] = []
        self._index = -1

    @property
    def current_url(self) -> Optional[str]:
        if 0 <= self._index < len(self._stack):
            return self._stack[self._index]
        return None

    @property
    def entries(self) -> List[str]:
        return list(self._stack)

    def record(self, url: str) -> None:
        # A new navigation after going back discards the forward entries.
        if self._index < len(self._stack) - 1:
            del self._stack[self._index + 1 :]
        if self._stack and self._stack[-1] == url:
            return
        self._stack.append(url)
        self._index = len(self._stack) - 1

    def plan(self, target_url: str) -> NavigationPlan:
        target_index = -1
        for position in range(len(self._stack) - 1, -1, -1):
            if urls_match(self._stack[position], target_url):
                target_index = position
                break
        if target_index == -1:
            return NavigationPlan("goto")
        distance = target_index - self._index
        if distance < 0:
            return NavigationPlan("go_back", -distance)
        if distance > 0:
            return NavigationPlan("go_forward", distance)
        return NavigationPlan("goto")

    async def navigate(self, page: Page, target_url: str, *, timeout_ms: int) -> str:
        """Reach ``target_url`` using history where possible; returns the method used."""

        plan = self.plan(target_url)
        try:
            if plan.method == "go_back":
                for _ in range(plan.distance):
                    await page.go_back(wait_until="commit", timeout=HISTORY_STEP_TIMEOUT_MS)
                    self._index -= 1
            elif plan.method == "go_forward":
                for _ in range(plan.distance):
                    await page.go_forward(wait_until="domcontentloaded", timeout=HISTORY_STEP_TIMEOUT_MS)
                    self._index += 1
        except PlaywrightError as exc:
            log.warning("History %s towards %s failed: %s", plan.method, target_url, exc)

        if plan.method != "goto" and page.url != "about:blank" and urls_match(page.url, target_url):
            with contextlib.suppress(PlaywrightError):
                await page.wait_for_load_state("domcontentloaded", timeout=SETTLE_TIMEOUT_MS)
            return plan.method

        if plan.method != "goto":
            log.info("%s did not reach %s, navigating directly", plan.method, target_url)
        try:
            await page.goto(target_url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(
                f"Navigation to {target_url} timed out after {timeout_ms}ms",
                details={"url": target_url, "method": plan.method},
            ) from exc
        self.record(target_url)
        with contextlib.suppress(PlaywrightError):
            await page.wait_for_load_state("networkidle", timeout=SETTLE_TIMEOUT_MS)
        return "goto" if plan.method == "goto" else f"{plan.method}-fallback"
