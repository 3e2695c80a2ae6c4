# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Browser management for DemoReel.

This module provides the BrowserManager class which handles the lifecycle
of the Playwright browser used for a recording session: launching, creating
a context with a fixed viewport, opening the page to record and releasing
everything exactly once.

Screencast capture relies on the Chrome DevTools Protocol, so only
Chromium is supported.
"""

from __future__ import annotations

from typing import Any, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from demoreel.exceptions import BrowserError
from demoreel.utils.logger import logger

DEFAULT_LAUNCH_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-web-security",
    "--allow-running-insecure-content",
]


class BrowserManager:
    """
    Manages the Playwright browser instance for one recording session.

    Attributes:
        headless: Whether browser runs in headless mode (no visible window)
        width: Viewport width in pixels
        height: Viewport height in pixels
        launch_options: Additional Playwright launch options

    Example:
        >>> manager = BrowserManager(width=1920, height=1080)
        >>> await manager.start()
        >>> page = manager.page
        >>> await manager.stop()
    """

    def __init__(
        self,
        headless: bool = True,
        width: int = 1920,
        height: int = 1080,
        args: Optional[List[str]] = None,
        **launch_options: Any,
    ) -> None:
        """
        Initialize the browser manager with configuration.

        Args:
            headless: Whether to run browser in headless mode. Default: True
            width: Viewport width, also the screencast resolution
            height: Viewport height, also the screencast resolution
            args: Chromium command-line arguments. Defaults to DEFAULT_LAUNCH_ARGS
            **launch_options: Additional Playwright launch options such as
                executable_path or slow_mo
        """
        self.headless = headless
        self.width = width
        self.height = height
        self.args = list(DEFAULT_LAUNCH_ARGS if args is None else args)
        self.launch_options = launch_options
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._stopped = False

    async def start(self) -> None:
        """
        Start the browser and open the page to record.

        Raises:
            BrowserError: If the browser fails to start
        """
        try:
            logger.info(
                f"[BROWSER] Launching chromium (headless={self.headless}, "
                f"viewport={self.width}x{self.height})"
            )
            self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=self.args, **self.launch_options
            )

            viewport = {"width": self.width, "height": self.height}
            self._context = await self._browser.new_context(viewport=viewport)
            self._page = await self._context.new_page()

            logger.info("[BROWSER] Browser started successfully")
        except Exception as e:
            logger.error(f"[BROWSER] Failed to start browser: {e}")
            await self._teardown()
            raise BrowserError(f"Failed to start browser: {e}") from e

    async def stop(self) -> None:
        """
        Stop the browser and release all resources.

        Safe to call more than once; only the first call releases anything.

        Raises:
            BrowserError: If cleanup fails
        """
        if self._stopped:
            logger.debug("[BROWSER] Browser already stopped")
            return
        self._stopped = True
        try:
            logger.info("[BROWSER] Stopping browser")
            if self._page:
                await self._page.close()
            if self._context:
                await self._context.close()
            if self._browser:
                await self._browser.close()
            if self._playwright:
                await self._playwright.stop()
            logger.info("[BROWSER] Browser stopped successfully")
        except Exception as e:
            logger.error(f"[BROWSER] Error stopping browser: {e}")
            raise BrowserError(f"Failed to stop browser: {e}") from e
        finally:
            self._page = None
            self._context = None
            self._browser = None
            self._playwright = None

    async def _teardown(self) -> None:
        """Release whatever a failed start() managed to acquire."""
        for resource in (self._browser, self._playwright):
            if resource is None:
                continue
            try:
                if resource is self._playwright:
                    await resource.stop()
                else:
                    await resource.close()
            except Exception as e:
                logger.debug(f"[BROWSER] Teardown error ignored: {e}")
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    @property
    def page(self) -> Page:
        """Get the page being recorded."""
        if not self._page:
            raise BrowserError("No active page. Call start() first.")
        return self._page

    @property
    def context(self) -> BrowserContext:
        """Get the browser context."""
        if not self._context:
            raise BrowserError("Browser context not initialized. Call start() first.")
        return self._context

    async def __aenter__(self) -> "BrowserManager":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()
