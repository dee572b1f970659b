"""Interaction helpers that prepare elements and fall back when a driver call fails."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError, Locator

log = logging.getLogger(__name__)

DEFAULT_ACTION_TIMEOUT = 10_000

_MODIFIER_NAMES = {"ctrl": "Control", "shift": "Shift", "alt": "Alt", "meta": "Meta"}

_SET_VALUE_SCRIPT = """
(el, value) => {
    const ctor = el instanceof HTMLTextAreaElement ? HTMLTextAreaElement
        : el instanceof HTMLSelectElement ? HTMLSelectElement
        : HTMLInputElement;
    const setter = Object.getOwnPropertyDescriptor(ctor.prototype, 'value')?.set;
    // React only sees writes made through the native setter.
    setter ? setter.call(el, value) : (el.value = value);
    for (const type of ['input', 'change']) {
        el.dispatchEvent(new Event(type, { bubbles: true }));
    }
}
"""


def _timeout(value: Optional[int]) -> int:
    return DEFAULT_ACTION_TIMEOUT if value is None else value


def playwright_modifiers(modifiers: Sequence[str]) -> List[str]:
    return [_MODIFIER_NAMES.get(modifier, modifier) for modifier in modifiers]


async def prepare_locator(locator: Locator, timeout: Optional[int] = None) -> Locator:
    """Ensure the locator is attached, scrolled into view, visible and enabled."""

    timeout = _timeout(timeout)
    await locator.wait_for(state="attached", timeout=timeout)
    await locator.scroll_into_view_if_needed(timeout=timeout)
    await locator.wait_for(state="visible", timeout=timeout)
    if not await locator.is_enabled():
        raise PlaywrightError("Element is not enabled for interaction")
    return locator


async def safe_click(
    locator: Locator,
    *,
    timeout: Optional[int] = None,
    button: str = "left",
    click_count: int = 1,
    modifiers: Sequence[str] = (),
) -> str:
    """Click, retrying with ``force`` and finally a DOM ``click()``; returns the method used."""

    timeout = _timeout(timeout)
    target = await prepare_locator(locator, timeout)
    keys = playwright_modifiers(modifiers)
    try:
        await target.click(timeout=timeout, button=button, click_count=click_count, modifiers=keys)
        return "click"
    except PlaywrightError as exc:
        log.warning("Click failed (%s); retrying with force", exc)
        try:
            await target.click(timeout=timeout, button=button, click_count=click_count, modifiers=keys, force=True)
            return "force"
        except PlaywrightError as force_error:
            if button != "left" or click_count != 1 or keys:
                raise
            log.warning("Forced click failed, dispatching DOM click: %s", force_error)
            await target.evaluate("el => el.click()")
            return "dom"


async def safe_hover(locator: Locator, *, timeout: Optional[int] = None) -> None:
    timeout = _timeout(timeout)
    target = await prepare_locator(locator, timeout)
    try:
        await target.hover(timeout=timeout)
    except PlaywrightError as exc:
        log.warning("Hover failed (%s); retrying with force", exc)
        await target.hover(timeout=timeout, force=True)


async def safe_fill(locator: Locator, value: str, *, timeout: Optional[int] = None) -> None:
    """Replace the element's value, falling back to a native setter plus input events."""

    timeout = _timeout(timeout)
    target = await prepare_locator(locator, timeout)
    try:
        await target.fill(value, timeout=timeout)
    except PlaywrightError as exc:
        log.warning("Fill failed, writing value through the DOM: %s", exc)
        await target.evaluate(_SET_VALUE_SCRIPT, value)


async def safe_type(
    locator: Locator,
    value: str,
    *,
    delay_ms: Optional[int] = None,
    timeout: Optional[int] = None,
) -> None:
    """Clear the field, then send ``value`` one key at a time."""

    timeout = _timeout(timeout)
    target = await prepare_locator(locator, timeout)
    await target.click(timeout=timeout)
    await target.fill("", timeout=timeout)
    await target.press_sequentially(value, delay=delay_ms or 0, timeout=timeout)


async def safe_select(
    locator: Locator,
    *,
    value: Optional[str] = None,
    label: Optional[str] = None,
    index: Optional[int] = None,
    timeout: Optional[int] = None,
) -> List[str]:
    """Select an option by value, then label, then index."""

    timeout = _timeout(timeout)
    target = await prepare_locator(locator, timeout)
    attempts = []
    if value is not None:
        attempts.append({"value": value})
    if label is not None:
        attempts.append({"label": label})
    if index is not None:
        attempts.append({"index": index})
    if not attempts:
        raise ValueError("select requires a value, label or index")

    *fallbacks, final = attempts
    for option in fallbacks:
        try:
            return await target.select_option(timeout=timeout, **option)
        except PlaywrightError as exc:
            log.debug("select_option(%s) failed: %s", option, exc)
    return await target.select_option(timeout=timeout, **final)
