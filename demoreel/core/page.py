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
Page controller for scripted walkthroughs.

This module provides the PageController class which wraps the Playwright
Page API with error handling and logging. It is the page-interaction surface
used while a screencast is running: bounded navigation with a placeholder
fallback, and the generic UI actions the interaction driver replays.
"""

from __future__ import annotations

import html
from typing import Any, Optional

from playwright.async_api import Page

from demoreel.exceptions import ActionError, NavigationError, PageError
from demoreel.utils.logger import logger

PLACEHOLDER_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; margin: 0; padding: 2rem; min-height: 100vh;
             background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);">
  <div style="text-align: center; color: white;">
    <h1>{title}</h1>
    <p style="font-size: 1.2rem;">{subtitle}</p>
  </div>
</body>
</html>"""


def render_placeholder(title: str, subtitle: str = "Demo Video Recording") -> str:
    """Build the stand-in page shown when the target cannot be reached."""
    return PLACEHOLDER_TEMPLATE.format(
        title=html.escape(title),
        subtitle=html.escape(subtitle),
    )


class PageController:
    """
    Controls page interactions during a recording.

    Attributes:
        page: The underlying Playwright Page instance

    Example:
        >>> controller = PageController(page)
        >>> reached = await controller.open_target("http://localhost:3000", "Demo")
        >>> await controller.click("button")
    """

    def __init__(self, page: Page) -> None:
        """
        Initialize the page controller.

        Args:
            page: Playwright Page instance to control
        """
        self.page = page

    async def goto(self, url: str, wait_until: str = "networkidle", timeout: int = 10000) -> None:
        """
        Navigate to a URL with a bounded timeout.

        Args:
            url: URL to navigate to (must include protocol)
            wait_until: When to consider navigation succeeded
                ("load", "domcontentloaded", "networkidle", "commit")
            timeout: Maximum time to wait for navigation in milliseconds

        Raises:
            NavigationError: If navigation fails or times out
        """
        try:
            logger.info(f"[PAGE] Navigating to {url}")
            await self.page.goto(url, wait_until=wait_until, timeout=timeout)
            logger.info(f"[PAGE] Successfully navigated to {url}")
        except Exception as e:
            logger.error(f"[PAGE] Navigation failed: {e}")
            raise NavigationError(f"Failed to navigate to {url}: {e}") from e

    async def show_placeholder(self, title: str, subtitle: str = "Demo Video Recording") -> None:
        """
        Replace the page content with a synthesized placeholder.

        Raises:
            PageError: If the content cannot be set
        """
        try:
            await self.page.set_content(render_placeholder(title, subtitle))
        except Exception as e:
            logger.error(f"[PAGE] Failed to render placeholder: {e}")
            raise PageError(f"Failed to render placeholder page: {e}") from e

    async def open_target(
        self,
        url: Optional[str],
        placeholder_title: str,
        wait_until: str = "networkidle",
        timeout: int = 10000,
    ) -> bool:
        """
        Open the page to record, falling back to a placeholder.

        Args:
            url: Target URL, or None to go straight to the placeholder
            placeholder_title: Heading of the placeholder page
            wait_until: Navigation wait condition
            timeout: Navigation timeout in milliseconds

        Returns:
            True if the target was reached, False if the placeholder is shown
        """
        if url:
            try:
                await self.goto(url, wait_until=wait_until, timeout=timeout)
                return True
            except NavigationError as e:
                logger.warning(f"[PAGE] Target not accessible, using placeholder page: {e}")
        else:
            logger.warning("[PAGE] No target URL given, using placeholder page")

        await self.show_placeholder(placeholder_title)
        return False

    async def click(self, selector: str, index: int = 0, timeout: int = 5000) -> None:
        """
        Click the index-th element matching a selector.

        Raises:
            ActionError: If the element cannot be clicked
        """
        try:
            await self.page.locator(selector).nth(index).click(timeout=timeout)
        except Exception as e:
            raise ActionError(f"Failed to click {selector}[{index}]: {e}") from e

    async def type(self, selector: str, text: str, timeout: int = 5000) -> None:
        """
        Fill an input matched by a selector.

        Raises:
            ActionError: If the input cannot be filled
        """
        try:
            await self.page.fill(selector, text, timeout=timeout)
        except Exception as e:
            raise ActionError(f"Failed to type into {selector}: {e}") from e

    async def wait(self, milliseconds: int) -> None:
        """Wait a fixed delay."""
        await self.page.wait_for_timeout(milliseconds)

    async def wait_for_selector(
        self, selector: str, timeout: int = 10000, state: str = "visible"
    ) -> None:
        """
        Wait for a selector to be in a specific state.

        Args:
            selector: CSS selector
            timeout: Timeout in milliseconds
            state: Element state to wait for (visible, hidden, attached, detached)
        """
        try:
            await self.page.wait_for_selector(selector, timeout=timeout, state=state)
        except Exception as e:
            raise ActionError(f"Failed to wait for selector {selector}: {e}") from e

    async def evaluate(self, script: str) -> Any:
        """
        Execute JavaScript in the page context.

        Returns:
            Result of the script execution
        """
        try:
            return await self.page.evaluate(script)
        except Exception as e:
            raise ActionError(f"Failed to evaluate script: {e}") from e

    async def scroll_to(self, position: str) -> None:
        """Smoothly scroll to "top" or "bottom" of the page."""
        if position == "top":
            script = "window.scrollTo({top: 0, behavior: 'smooth'})"
        elif position == "bottom":
            script = "window.scrollTo({top: document.body.scrollHeight, behavior: 'smooth'})"
        else:
            raise ActionError(f"Unknown scroll position: {position}")
        await self.evaluate(script)

    async def get_title(self) -> str:
        """Get the page title."""
        try:
            return await self.page.title()
        except Exception as e:
            raise PageError(f"Failed to get page title: {e}") from e

    @property
    def url(self) -> str:
        """Current page URL."""
        return self.page.url
