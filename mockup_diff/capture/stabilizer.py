"""Render stabilizer: removes animation and loading non-determinism before a screenshot."""

from __future__ import annotations

import logging

from playwright.async_api import Page

logger = logging.getLogger(__name__)

FREEZE_MOTION_CSS = """
*, *::before, *::after {
  animation-duration: 0s !important;
  animation-delay: 0s !important;
  transition-duration: 0s !important;
  transition-delay: 0s !important;
}
"""

_FONTS_READY_JS = "() => document.fonts.ready.then(() => true)"


async def stabilize(
    page: Page,
    font_timeout_ms: int = 10000,
    settle_delay_ms: int = 1000,
) -> list[str]:
    """Freeze CSS motion, wait for web fonts, then let script-driven layout settle.

    Every step is best effort. Returns the names of the steps that did not
    complete so callers can record them; nothing here raises.
    """
    incomplete = []

    try:
        await page.add_style_tag(content=FREEZE_MOTION_CSS)
    except Exception as e:
        logger.warning("Could not inject animation override on %s: %s", page.url, e)
        incomplete.append("freeze_motion")

    try:
        await page.wait_for_function(_FONTS_READY_JS, timeout=font_timeout_ms)
    except Exception as e:
        logger.warning("Fonts not ready on %s after %dms: %s", page.url, font_timeout_ms, e)
        incomplete.append("fonts_ready")

    # Carousels and lazy-load placeholders paint after load
    if settle_delay_ms:
        try:
            await page.wait_for_timeout(settle_delay_ms)
        except Exception as e:
            logger.warning("Settle delay interrupted on %s: %s", page.url, e)
            incomplete.append("settle")

    logger.debug("Stabilized %s (incomplete steps: %s)", page.url, incomplete or "none")
    return incomplete
