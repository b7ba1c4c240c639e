"""
Shared headless Chromium session.

One Playwright driver and browser per process, started lazily and
reused by the diagram renderer and the PDF renderer. Each render gets a
fresh page that is closed afterwards.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from md_converter.core.exceptions import DependencyError
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class BrowserSession:
    """Lazily launched Chromium instance shared across conversions."""

    def __init__(self, launch_args: Optional[List[str]] = None):
        self.launch_args = launch_args if launch_args is not None else list(DEFAULT_LAUNCH_ARGS)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        # Created on first use so it binds to the running loop.
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _ensure_browser(self) -> Browser:
        async with self._get_lock():
            if self.is_running:
                return self._browser

            # A dead browser is dropped and relaunched.
            await self._shutdown()

            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=True,
                    args=self.launch_args,
                )
            except Exception as e:
                await self._shutdown()
                raise DependencyError(
                    f"Could not launch headless Chromium: {e}",
                    error_code="browser_unavailable",
                ) from e

            logger.info("Headless browser launched", extra={"launch_args": self.launch_args})
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Open a new page, closing it when the block exits."""
        browser = await self._ensure_browser()
        page = await browser.new_page()
        try:
            yield page
        finally:
            if not page.is_closed():
                await page.close()

    async def _shutdown(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None and browser.is_connected():
            await browser.close()
        if playwright is not None:
            await playwright.stop()

    async def close(self) -> None:
        """Close the browser and stop the Playwright driver."""
        async with self._get_lock():
            was_running = self.is_running
            await self._shutdown()
        if was_running:
            logger.info("Headless browser closed")
