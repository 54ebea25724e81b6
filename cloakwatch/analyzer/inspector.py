"""Visit a URL in a fresh context and collect what the classifier needs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from .browser import BrowserManager, BrowserUnavailableError, simulate_mouse_movements
from .signals import DetectedSignals, SignalDetector

logger = logging.getLogger(__name__)


@dataclass
class Inspection:
    """Outcome of a single page visit."""

    initial_url: str
    final_url: str = ""
    redirect_path: list[str] = field(default_factory=list)
    screenshot: bytes = b""
    html: str = ""
    signals: DetectedSignals = field(default_factory=DetectedSignals)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.screenshot)


class PageInspector:
    """Navigates with signal hooks installed and captures screenshot, HTML and path."""

    def __init__(
        self,
        browsers: BrowserManager,
        user_agents=None,
        *,
        navigation_timeout: float = 30.0,
        settle_seconds: float = 5.0,
        hosting_suffixes=None,
    ):
        self.browsers = browsers
        self.user_agents = user_agents
        self.navigation_timeout = navigation_timeout
        self.settle_seconds = settle_seconds
        self.hosting_suffixes = hosting_suffixes

    def _detector(self) -> SignalDetector:
        if self.hosting_suffixes is None:
            return SignalDetector()
        return SignalDetector(self.hosting_suffixes)

    async def inspect(self, url: str, referer: Optional[str] = None) -> Inspection:
        result = Inspection(initial_url=url)
        detector = self._detector()
        user_agent = await self.user_agents.get() if self.user_agents else None

        try:
            async with self.browsers.page(user_agent=user_agent) as page:
                path: list[str] = []

                def _track(request) -> None:
                    try:
                        if request.is_navigation_request() and request.frame == page.main_frame:
                            if not path or path[-1] != request.url:
                                path.append(request.url)
                    except PlaywrightError:
                        pass

                page.on("request", _track)
                await detector.install(page)

                await page.goto(
                    url,
                    referer=referer,
                    wait_until="commit",
                    timeout=self.navigation_timeout * 1000,
                )
                await detector.monitor_page_load(page, timeout=self.navigation_timeout)
                await simulate_mouse_movements(page)
                await asyncio.sleep(self.settle_seconds)
                await page.mouse.click(0, 0)

                result.screenshot = await page.screenshot()
                result.html = await page.content()
                result.final_url = page.url
                result.redirect_path = path or [url]
                if result.redirect_path[-1] != result.final_url:
                    result.redirect_path.append(result.final_url)
                result.signals = await detector.detect_all(page, result.final_url)
        except (PlaywrightError, BrowserUnavailableError) as exc:
            logger.info("Inspection of %s failed: %s", url, exc)
            result.error = str(exc)
        return result
