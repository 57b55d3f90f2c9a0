"""Browser session: one Chromium process per run, one isolated context per capture."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from mockup_diff.errors import BrowserLaunchFailure
from mockup_diff.models.config import ViewportConfig

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--font-render-hinting=none",
    "--force-color-profile=srgb",
]


class BrowserSession:
    """Owns the Playwright driver and a single browser process.

    Created once per run and passed explicitly to every capture call.
    """

    def __init__(self, playwright: Playwright | None, browser: Browser):
        self._playwright = playwright
        self.browser = browser
        self._closed = False

    @classmethod
    async def launch(cls, headless: bool = True) -> "BrowserSession":
        """Start Playwright and Chromium. Raises BrowserLaunchFailure on any error."""
        try:
            playwright = await async_playwright().start()
        except Exception as e:
            raise BrowserLaunchFailure(f"Could not start Playwright: {e}") from e

        try:
            browser = await playwright.chromium.launch(headless=headless, args=_LAUNCH_ARGS)
        except Exception as e:
            await playwright.stop()
            raise BrowserLaunchFailure(f"Could not launch Chromium: {e}") from e

        logger.debug("Launched Chromium (headless=%s)", headless)
        return cls(playwright, browser)

    async def new_context(
        self,
        viewport: ViewportConfig,
        user_agent: Optional[str] = None,
    ) -> BrowserContext:
        """Create a fresh context (own cookies, storage and viewport) for one task."""
        return await self.browser.new_context(
            viewport=viewport.as_playwright(),
            device_scale_factor=1,
            user_agent=user_agent or DEFAULT_USER_AGENT,
            locale="en-US",
            timezone_id="America/New_York",
            reduced_motion="reduce",
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.browser.close()
        except Exception as e:
            logger.warning("Error closing browser: %s", e)
        if self._playwright is not None:
            await self._playwright.stop()
        logger.debug("Browser session closed")

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
