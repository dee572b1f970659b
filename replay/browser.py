"""Browser lifecycle for a single playback run."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Page, async_playwright

from recording.models import Recording

from .config import RunOptions

log = logging.getLogger(__name__)


class BrowserSession:
    """Owns one Playwright browser, context and page.

    Use as an async context manager; everything is closed on exit even when
    the run fails.  A headed launch that fails (no display, for example) is
    retried headless when ``options.headless_fallback`` is set.
    """

    def __init__(
        self,
        options: RunOptions,
        *,
        viewport: Optional[dict] = None,
        user_agent: Optional[str] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.options = options
        self.viewport = viewport
        self.user_agent = user_agent
        self._factory = playwright_factory
        self._pw: Any = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.fell_back_to_headless = False

    @classmethod
    def for_recording(cls, options: RunOptions, recording: Recording) -> "BrowserSession":
        viewport = {"width": recording.viewport.width, "height": recording.viewport.height}
        return cls(options, viewport=viewport, user_agent=recording.user_agent)

    async def __aenter__(self) -> "BrowserSession":
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> Page:
        self._pw = await self._factory().start()
        launcher = getattr(self._pw, self.options.browser)
        try:
            self.browser = await launcher.launch(headless=self.options.headless)
        except PlaywrightError as exc:
            if self.options.headless or not self.options.headless_fallback:
                raise
            log.warning("Headed %s launch failed (%s); retrying headless", self.options.browser, exc)
            self.browser = await launcher.launch(headless=True)
            self.fell_back_to_headless = True

        context_args: dict = {}
        if self.viewport:
            context_args["viewport"] = self.viewport
        if self.user_agent:
            context_args["user_agent"] = self.user_agent
        self.context = await self.browser.new_context(**context_args)
        self.context.set_default_timeout(self.options.action_timeout_ms)
        self.context.set_default_navigation_timeout(self.options.navigation_timeout_ms)
        self.page = await self.context.new_page()
        log.info(
            "Launched %s (headless=%s) with viewport %s",
            self.options.browser,
            self.options.headless or self.fell_back_to_headless,
            self.viewport,
        )
        return self.page

    async def close(self) -> None:
        for resource in (self.context, self.browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as exc:
                log.debug("Ignoring error while closing %s: %s", type(resource).__name__, exc)
        self.context = None
        self.browser = None
        self.page = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None
