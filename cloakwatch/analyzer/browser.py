"""Shared Playwright browser with lazy, single-flight recreation."""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import unquote, urlparse

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Error as PlaywrightError

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 5.0
INIT_WAIT_POLL = 0.5
INIT_WAIT_LIMIT = 10.0
INIT_ATTEMPTS = 3
INIT_RETRY_DELAY = 2.0

ANALYTICS_ROUTE = "https://www.google-analytics.com/g/collect*"

# Trimmed stealth script - hides the obvious headless markers
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {}, loadTimes: function() {}, csi: function() {}, app: {} };
"""


class BrowserUnavailableError(RuntimeError):
    """The browser could not be (re)started."""


def playwright_proxy(proxy_url: str) -> Optional[dict]:
    """Split credentials out of a proxy URL into Playwright's proxy settings."""
    if not proxy_url:
        return None
    parsed = urlparse(proxy_url)
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"Invalid proxy URL: {proxy_url!r}")

    server = f"{parsed.scheme}://{parsed.hostname}"
    if parsed.port:
        server = f"{server}:{parsed.port}"
    proxy = {"server": server}
    if parsed.username:
        proxy["username"] = unquote(parsed.username)
    if parsed.password:
        proxy["password"] = unquote(parsed.password)
    return proxy


class BrowserManager:
    """
    Owns one Chromium instance.

    Callers go through ensure_healthy() before each use. At most one
    initialization runs at a time; concurrent callers wait on it instead of
    launching a second browser.
    """

    def __init__(self, headless: bool = True, proxy_url: str = ""):
        self.headless = headless
        self.proxy_url = proxy_url
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._initializing = False
        self._init_lock = asyncio.Lock()
        # Bumped on every successful launch
        self._generation = 0

    async def start(self):
        """Start the browser instance."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-dev-shm-usage",
                "--disable-gpu",
                "--disable-software-rasterizer",
            ],
        )
        self._generation += 1
        logger.info("Browser started")

    async def stop(self):
        """Stop the browser instance."""
        try:
            if self._browser:
                await self._browser.close()
        except PlaywrightError as exc:
            logger.warning("Browser close failed: %s", exc)
        finally:
            self._browser = None

        try:
            if self._playwright:
                await self._playwright.stop()
        except PlaywrightError as exc:
            logger.warning("Playwright stop error: %s", exc)
        finally:
            self._playwright = None

        logger.info("Browser stopped")

    async def is_healthy(self) -> bool:
        """Connected, and able to open and close a throwaway context."""
        browser = self._browser
        if browser is None or not browser.is_connected():
            return False

        async def _round_trip():
            context = await browser.new_context()
            await context.close()

        try:
            await asyncio.wait_for(_round_trip(), timeout=HEALTH_CHECK_TIMEOUT)
        except (asyncio.TimeoutError, PlaywrightError) as exc:
            logger.warning("Browser health check failed: %s", exc)
            return False
        return True

    async def _reinitialize(self) -> None:
        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as exc:
                logger.debug("Closing dead browser failed: %s", exc)
        await self.start()

    async def _wait_for_init(self) -> Browser:
        logger.info("Browser initialization already in progress, waiting...")
        waited = 0.0
        while self._initializing and waited < INIT_WAIT_LIMIT:
            await asyncio.sleep(INIT_WAIT_POLL)
            waited += INIT_WAIT_POLL
        if self._initializing or self._browser is None:
            raise BrowserUnavailableError("Browser initialization timed out")
        return self._browser

    async def ensure_healthy(self) -> Browser:
        if self._initializing:
            return await self._wait_for_init()

        generation = self._generation
        if await self.is_healthy():
            return self._browser

        async with self._init_lock:
            # Another caller relaunched while this one was probing
            if self._generation != generation and self._browser is not None:
                return self._browser
            self._initializing = True
            try:
                return await self._launch_with_retries()
            finally:
                self._initializing = False

    async def _launch_with_retries(self) -> Browser:
        last_error: Optional[BaseException] = None
        for attempt in range(1, INIT_ATTEMPTS + 1):
            try:
                logger.info("Initializing browser (attempt %s/%s)", attempt, INIT_ATTEMPTS)
                await self._reinitialize()
                return self._browser
            except PlaywrightError as exc:
                last_error = exc
                logger.error("Browser initialization attempt %s failed: %s", attempt, exc)
                if attempt < INIT_ATTEMPTS:
                    await asyncio.sleep(INIT_RETRY_DELAY)

        raise BrowserUnavailableError(
            f"Failed to initialize browser after {INIT_ATTEMPTS} attempts: {last_error}"
        )

    async def new_context(self, *, user_agent: Optional[str] = None, use_proxy: bool = True) -> BrowserContext:
        browser = await self.ensure_healthy()
        options = {
            "viewport": {"width": 1920, "height": 1080},
            "ignore_https_errors": True,
            "locale": "en-US",
        }
        if user_agent:
            options["user_agent"] = user_agent
        proxy = playwright_proxy(self.proxy_url) if use_proxy else None
        if proxy:
            options["proxy"] = proxy
        context = await browser.new_context(**options)
        await context.add_init_script(STEALTH_SCRIPT)
        return context

    @asynccontextmanager
    async def page(self, *, user_agent: Optional[str] = None, use_proxy: bool = True):
        """Fresh context + page, closed on exit even when the visit fails."""
        context = await self.new_context(user_agent=user_agent, use_proxy=use_proxy)
        page = None
        try:
            page = await context.new_page()
            await page.route(ANALYTICS_ROUTE, lambda route: route.fulfill(status=204, body=""))
            yield page
        finally:
            if page is not None:
                try:
                    await page.close()
                except PlaywrightError:
                    pass
            try:
                await context.close()
            except PlaywrightError:
                pass


async def simulate_mouse_movements(page: Page, moves: int = 4) -> None:
    """Random pointer movement; some cloakers wait for input before redirecting."""
    viewport = page.viewport_size or {"width": 1920, "height": 1080}
    try:
        for _ in range(moves):
            x = random.randint(50, max(51, viewport["width"] - 50))
            y = random.randint(50, max(51, viewport["height"] - 50))
            await page.mouse.move(x, y, steps=random.randint(3, 8))
            await asyncio.sleep(random.uniform(0.05, 0.2))
    except PlaywrightError as exc:
        logger.debug("Mouse simulation error (non-fatal): %s", exc)
