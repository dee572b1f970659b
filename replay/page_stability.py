"""Waiting helpers that let dynamic pages settle between actions."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from playwright.async_api import Error as PlaywrightError, Page

log = logging.getLogger(__name__)

PAGE_READY_TIMEOUT_MS = 3_000
QUIET_PERIOD_MS = 300

# Common spinner markup; all of it must be gone before the page counts as ready.
BUSY_INDICATORS = ", ".join(
    (
        ".loading",
        ".spinner",
        ".loader",
        "[data-testid*='loading']",
        "[data-testid*='spinner']",
        "[aria-busy='true']",
    )
)

# Resolves true once no mutation has been seen for ``quietMs``; false if
# ``budgetMs`` runs out first.
_QUIET_DOM_SCRIPT = """
([budgetMs, quietMs]) => new Promise(resolve => {
    const begun = performance.now();
    let lastChange = begun;
    const observer = new MutationObserver(() => { lastChange = performance.now(); });
    observer.observe(document, { subtree: true, childList: true, attributes: true, characterData: true });
    const timer = setInterval(() => {
        const now = performance.now();
        const quiet = now - lastChange >= quietMs;
        if (quiet || now - begun >= budgetMs) {
            clearInterval(timer);
            observer.disconnect();
            resolve(quiet);
        }
    }, 50);
})
"""


async def wait_dom_idle(page: Page, timeout_ms: int = PAGE_READY_TIMEOUT_MS) -> bool:
    try:
        quiet = await page.evaluate(_QUIET_DOM_SCRIPT, [timeout_ms, QUIET_PERIOD_MS])
    except PlaywrightError as exc:
        log.debug("DOM quiet probe failed: %s", exc)
        return False
    if not quiet:
        log.debug("DOM still changing after %dms", timeout_ms)
    return bool(quiet)


async def wait_for_loading_indicators(page: Page, timeout_ms: int = PAGE_READY_TIMEOUT_MS) -> None:
    with contextlib.suppress(PlaywrightError):
        await page.wait_for_selector(BUSY_INDICATORS, state="hidden", timeout=timeout_ms)


async def wait_for_page_ready(page: Page, timeout_ms: int = PAGE_READY_TIMEOUT_MS) -> None:
    """Best-effort wait after a navigation: body attached, network quiet, DOM quiet, no spinners.

    Every step is bounded by ``timeout_ms`` and a step that times out is not
    an error; slow pages are replayed anyway and fail at the element level.
    """

    with contextlib.suppress(PlaywrightError):
        await page.wait_for_selector("body", state="attached", timeout=timeout_ms)
    with contextlib.suppress(PlaywrightError):
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    await wait_dom_idle(page, timeout_ms)
    await wait_for_loading_indicators(page, timeout_ms)


async def settle(delay_ms: int) -> None:
    """Fixed pause after an interaction so handlers can run."""

    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)
