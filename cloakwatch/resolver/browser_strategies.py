"""Browser-driven redirect strategies."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from ..analyzer.browser import BrowserManager, simulate_mouse_movements

logger = logging.getLogger(__name__)

AD_NETWORK_REFERER = "https://syndicatedsearch.goog/"
SETTLE_SECONDS = 2.0


def pick_destination(start_url: str, path: list[str], final_url: str) -> Optional[str]:
    """Last navigation on the final URL's host, or None when nothing moved."""
    final_host = (urlparse(final_url).hostname or "").lower()
    destination = final_url
    for hop in reversed(path):
        if (urlparse(hop).hostname or "").lower() == final_host:
            destination = hop
            break
    if not destination or destination == start_url:
        return None
    return destination


class BrowserRedirectStrategies:
    def __init__(
        self,
        browsers: BrowserManager,
        user_agents,
        navigation_timeout: float = 30.0,
        settle_seconds: float = SETTLE_SECONDS,
        referer: str = AD_NETWORK_REFERER,
    ):
        self.browsers = browsers
        self.user_agents = user_agents
        self.navigation_timeout = navigation_timeout
        self.settle_seconds = settle_seconds
        self.referer = referer

    async def _navigate(self, url: str, referer: Optional[str]) -> Optional[str]:
        user_agent = await self.user_agents.get()
        async with self.browsers.page(user_agent=user_agent) as page:
            path: list[str] = []

            def _track(frame) -> None:
                if frame == page.main_frame and (not path or path[-1] != frame.url):
                    path.append(frame.url)

            page.on("framenavigated", _track)
            timeout_ms = self.navigation_timeout * 1000
            await page.goto(url, referer=referer, wait_until="commit", timeout=timeout_ms)
            try:
                await page.wait_for_url("**", timeout=timeout_ms)
            except PlaywrightError as exc:
                logger.debug("URL did not settle for %s: %s", url, exc)
            await simulate_mouse_movements(page)
            await asyncio.sleep(self.settle_seconds)
            return pick_destination(url, path, page.url)

    async def browser(self, url: str) -> Optional[str]:
        return await self._navigate(url, referer=None)

    async def browser_referred(self, url: str) -> Optional[str]:
        return await self._navigate(url, referer=self.referer)
