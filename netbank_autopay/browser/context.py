"""Browser lifecycle management with Playwright.

This module provides BrowserManager, which owns one Playwright Chromium
instance and a single browser context emulating a desktop Mac browser for
the duration of a run.
"""

import asyncio
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from netbank_autopay.config import Settings


class BrowserManager:
    """Manager for a Playwright browser instance and its context.

    Usage:
        async with BrowserManager(settings, logger) as manager:
            page = await manager.new_page()
            # ... use page ...
    """

    _playwright: Playwright | None
    _browser: Browser | None
    _context: BrowserContext | None
    _lock: asyncio.Lock

    def __init__(self, settings: Settings, logger: Any) -> None:
        self.settings = settings
        self.logger = logger
        self._playwright = None
        self._browser = None
        self._context = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "BrowserManager":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    async def initialize(self) -> None:
        """Start Playwright, launch Chromium and set up browser capabilities.

        Raises:
            RuntimeError: If browser fails to launch.
        """
        async with self._lock:
            if self._context is not None:
                self.logger.info("browser_already_initialized")
                return

            try:
                self.logger.debug("launching_browser", headless=self.settings.browser_headless)
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.settings.browser_headless,
                    args=["--no-sandbox", "--disable-dev-shm-usage"],
                )

                self.logger.debug("setting_up_browser_capabilities")
                self._context = await self._browser.new_context(
                    user_agent=self.settings.browser_user_agent,
                    viewport={
                        "width": self.settings.viewport_width,
                        "height": self.settings.viewport_height,
                    },
                )
                self._context.set_default_timeout(self.settings.navigation_timeout_ms)

                self.logger.info("browser_initialized")

            except Exception as e:
                self.logger.error("browser_initialization_failed", error=str(e), exc_info=True)
                await self._close_all()
                raise RuntimeError(f"Failed to initialize browser: {e}") from e

    async def get_context(self) -> BrowserContext:
        """Get the current browser context, launching the browser if needed.

        Raises:
            RuntimeError: If context initialization fails.
        """
        if self._context is None:
            await self.initialize()

        if self._context is None:
            raise RuntimeError("Browser context is not available")

        return self._context

    async def new_page(self) -> Page:
        """Create a new page in the browser context.

        The page is closed together with the context on shutdown.
        """
        context = await self.get_context()
        page = await context.new_page()
        self.logger.debug("new_page_created", total_pages=len(context.pages))
        return page

    async def shutdown(self) -> None:
        """Close the browser and stop Playwright."""
        async with self._lock:
            await self._close_all()
            self.logger.debug("browser_shutdown_complete")

    async def _close_all(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                self.logger.warning("error_closing_context", error=str(e))
            finally:
                self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                self.logger.warning("error_closing_browser", error=str(e))
            finally:
                self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                self.logger.warning("error_stopping_playwright", error=str(e))
            finally:
                self._playwright = None
