"""Playwright-backed browser sessions, one per gallery job."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
)

from .config import HarvestConfig
from .errors import NavigationError
from .utils import last_path_segment

logger = logging.getLogger("gallery_harvester.browser")

CHROME_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]
VIEWPORT = {"width": 1366, "height": 900}

_SCROLL_HEIGHT_JS = "() => document.body ? document.body.scrollHeight : 0"
_SCROLL_BY_JS = "(px) => window.scrollBy(0, px)"


def title_from_url(url: str) -> str:
    """Derive a gallery title from the URL path, falling back to the host."""
    segment = last_path_segment(url)
    if segment:
        name = segment.replace("_", " ").replace("-", " ").strip()
        if name:
            return name
    return urlsplit(url).hostname or url


class BrowserSession:
    """A single Chromium browser with one context and one page.

    Sessions are owned by exactly one job. Use as an async context manager so
    the browser is released on every exit path::

        async with await BrowserSession.launch(playwright, config) as session:
            await session.navigate(url)
    """

    def __init__(self, config: HarvestConfig) -> None:
        self.config = config
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._closed = False

    @classmethod
    async def launch(
        cls, playwright: Playwright, config: HarvestConfig
    ) -> "BrowserSession":
        session = cls(config)
        try:
            session.browser = await playwright.chromium.launch(
                headless=config.headless, args=CHROME_ARGS
            )
            session.context = await session.browser.new_context(
                user_agent=config.user_agent,
                viewport=VIEWPORT,
            )
            page = await session.context.new_page()
            page.set_default_navigation_timeout(config.navigation_timeout * 1000)
            page.set_default_timeout(config.action_timeout * 1000)
            session._page = page
        except BaseException:
            await session.close()
            raise
        return session

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session has no open page")
        return self._page

    @property
    def url(self) -> str:
        return self.page.url

    async def navigate(self, url: str, wait_until: Optional[str] = None) -> None:
        """Load ``url`` and give late scripts a moment to settle."""
        wait_until = wait_until or self.config.wait_until
        logger.info("Loading %s", url)
        try:
            await self.page.goto(url, wait_until=wait_until)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(url, f"timed out ({exc})") from exc
        except PlaywrightError as exc:
            raise NavigationError(url, str(exc)) from exc
        if self.config.wait_after_load:
            await self.page.wait_for_timeout(int(self.config.wait_after_load * 1000))

    async def extract_title(self) -> str:
        """Title fallback chain: first h1, document title, URL path, host."""
        page = self.page
        try:
            heading = await page.query_selector("h1")
            if heading is not None:
                text = (await heading.text_content() or "").strip()
                if text:
                    return text
        except PlaywrightError as exc:
            logger.debug("Could not read <h1> on %s: %s", page.url, exc)
        try:
            title = (await page.title()).strip()
            if title:
                return title
        except PlaywrightError as exc:
            logger.debug("Could not read document title on %s: %s", page.url, exc)
        return title_from_url(page.url)

    async def auto_scroll(
        self,
        max_steps: Optional[int] = None,
        step_px: Optional[int] = None,
        settle_ms: Optional[int] = None,
    ) -> int:
        """Scroll until the page height stops growing; returns steps taken."""
        max_steps = self.config.scroll_max_steps if max_steps is None else max_steps
        step_px = self.config.scroll_step_px if step_px is None else step_px
        settle_ms = self.config.scroll_settle_ms if settle_ms is None else settle_ms

        page = self.page
        last_height = await page.evaluate(_SCROLL_HEIGHT_JS)
        steps = 0
        for steps in range(1, max_steps + 1):
            await page.evaluate(_SCROLL_BY_JS, step_px)
            await page.wait_for_timeout(settle_ms)
            height = await page.evaluate(_SCROLL_HEIGHT_JS)
            if height == last_height:
                break
            last_height = height
        logger.debug("Scrolled %s in %d step(s), height=%s", page.url, steps, last_height)
        return steps

    async def close(self) -> None:
        """Release context and browser. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for resource in (self.context, self.browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except (PlaywrightError, OSError) as exc:
                logger.warning("Error while closing browser resource: %s", exc)
        self._page = None

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
