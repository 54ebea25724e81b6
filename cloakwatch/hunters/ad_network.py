"""Hunt scam landing pages served through a third-party ad network."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, parse_qsl, unquote, urlencode, urlsplit, urlunsplit

from playwright.async_api import Error as PlaywrightError

from ..analyzer.browser import BrowserManager, BrowserUnavailableError
from ..storage.enums import HuntType
from .base import BaseHunter

logger = logging.getLogger(__name__)

MAX_FEED_ATTEMPTS = 10
MAX_DECODE_ROUNDS = 5

# Per-impression parameter the network's own redirect strips anyway
AD_IMPRESSION_PARAMS = frozenset({"vf"})

AD_LINK_RE = re.compile(r'<a\s+href="([^"]+)"[^>]*\btarget', re.IGNORECASE)

FETCH_FEED_SCRIPT = """
async (feedUrl) => {
    const response = await fetch(feedUrl, {credentials: "include"});
    return await response.json();
}
"""


def extract_ad_link(feed) -> Optional[str]:
    """Click URL of the first creative in an ad feed response."""
    if not isinstance(feed, list) or not feed or not isinstance(feed[0], dict):
        return None
    html = feed[0].get("full_html")
    if not isinstance(html, str):
        return None
    match = AD_LINK_RE.search(html)
    return match.group(1).replace("&amp;", "&") if match else None


def canonicalize_ad_network_url(click_url: str) -> Optional[str]:
    """
    Advertiser landing URL carried in the click URL's `url` parameter.

    The value is sometimes encoded more than once, so it is decoded until it
    stops changing. None when there is no usable http(s) destination.
    """
    try:
        values = parse_qs(urlsplit(click_url).query).get("url")
        if not values:
            return None

        destination = values[0]
        for _ in range(MAX_DECODE_ROUNDS):
            decoded = unquote(destination)
            if decoded == destination:
                break
            destination = decoded

        parts = urlsplit(destination)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            return None
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in AD_IMPRESSION_PARAMS
        ]
    except ValueError as exc:
        logger.debug("Could not canonicalize ad network link %s: %s", click_url, exc)
        return None
    return urlunsplit(parts._replace(query=urlencode(query)))


class AdNetworkHunter(BaseHunter):
    """
    One ad impression per cycle, requested from the publisher page so the
    network sees the same origin and cookies a real visitor would send.
    """

    hunt_type = HuntType.AD_NETWORK

    def __init__(
        self,
        url_classifier,
        engine,
        store,
        browsers: BrowserManager,
        database,
        *,
        feed_url: str,
        referer: str,
        max_attempts: int = MAX_FEED_ATTEMPTS,
    ):
        super().__init__(url_classifier, engine, store)
        if not feed_url:
            raise ValueError("ad network feed URL must not be empty")
        self.browsers = browsers
        self.database = database
        self.feed_url = feed_url
        self.referer = referer
        self.max_attempts = max(1, int(max_attempts))

    async def hunt(self) -> bool:
        try:
            click_url = await self.grab_ad_url()
        except (PlaywrightError, BrowserUnavailableError) as exc:
            logger.warning("Ad network hunt failed: %s", exc)
            return False

        if click_url is None:
            logger.info("No ad network URL after %d attempt(s), giving up", self.max_attempts)
            return False

        destination = canonicalize_ad_network_url(click_url)
        if destination is None:
            logger.info("Failed to canonicalize ad network link %s", click_url)
            return False

        logger.info("Got an ad network URL: %s", destination)
        if await self.is_known_scam(self.database, destination):
            return True

        await self.process_candidate(destination, self.referer, enroll_url=destination)
        return True

    async def grab_ad_url(self) -> Optional[str]:
        async with self.browsers.page() as page:
            await page.goto(self.referer, wait_until="domcontentloaded")
            for attempt in range(1, self.max_attempts + 1):
                try:
                    feed = await page.evaluate(FETCH_FEED_SCRIPT, self.feed_url)
                except PlaywrightError as exc:
                    logger.debug("Ad feed request %d failed: %s", attempt, exc)
                    continue
                link = extract_ad_link(feed)
                if link:
                    return link
                logger.debug("Ad feed response %d had no creative link", attempt)
        return None
