"""Headless browser lifecycle for the crawler.

One Chromium process is launched lazily on first use and reused across
requests. Every page lives in its own browser context opened by
``new_page()`` and is closed on exit from the ``async with`` block, on both
the success and failure paths. ``close()`` is called from the application
lifespan on shutdown.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from playwright.async_api import Browser, Page, Playwright, async_playwright

logger = structlog.get_logger()


class BrowserManager:
    """Owns the Playwright driver and the shared Chromium instance.

    Args:
        headless: Launch Chromium without a window.
        user_agent: User agent sent by every page.
    """

    def __init__(self, *, headless: bool, user_agent: str) -> None:
        self._headless = headless
        self._user_agent = user_agent
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless
            )
            logger.info("Browser launched", headless=self._headless)
            return self._browser

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[Page]:
        """Open a page in a fresh context and close it afterwards."""
        browser = await self._get_browser()
        context = await browser.new_context(user_agent=self._user_agent)
        try:
            yield await context.new_page()
        finally:
            await context.close()

    async def close(self) -> None:
        """Shut down Chromium and the Playwright driver if they were started."""
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
                logger.info("Browser closed")
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
