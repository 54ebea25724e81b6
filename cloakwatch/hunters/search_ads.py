"""Hunt scam landing pages through sponsored results on parked search sites."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import parse_qs, parse_qsl, quote, unquote, urlencode, urlsplit, urlunsplit

from playwright.async_api import Error as PlaywrightError

from ..analyzer.browser import BrowserManager, BrowserUnavailableError
from ..storage.enums import HuntType
from ..utils.urls import is_http_url
from .base import BaseHunter

logger = logging.getLogger(__name__)

AD_FRAME_HOST = "syndicatedsearch.goog"
AD_REFERER = "https://syndicatedsearch.goog/"
DOUBLECLICK_CLICK_PREFIX = "https://ad.doubleclick.net/searchads/link/click"

# Present in the decoded adurl but not on the page the click actually lands on.
AD_TRACKING_PARAMS = frozenset(
    {"q", "nb", "nm", "nx", "ny", "is", "_agid", "gad_source", "rid", "gclid"}
)

BATCH_SIZE = 5

AD_FRAME_READY_SCRIPT = """
() => Array.from(document.querySelectorAll("iframe"))
    .some((frame) => frame.src && frame.src.includes("syndicatedsearch.goog"))
"""

EXTRACT_ADS_SCRIPT = """
() => {
    const ads = [];
    for (const span of document.querySelectorAll("span")) {
        if (!span.textContent || !span.textContent.includes("Sponsored")) continue;
        const container = span.parentElement && span.parentElement.parentElement;
        if (!container) continue;
        const links = Array.from(container.querySelectorAll("a"));
        const main = links.length ? links[links.length - 1].href : null;
        ads.push({link: main, text: container.textContent || "Ad text unavailable"});
    }
    return ads;
}
"""


@dataclass(frozen=True)
class SearchAd:
    link: str
    text: str


def generate_search_url(sites: Sequence[str], terms: Sequence[str], rng=random) -> str:
    """Random search site prefix joined with a URL-encoded random search term."""
    if not sites or not terms:
        raise ValueError("search sites and search terms must not be empty")
    return f"{rng.choice(list(sites))}{quote(rng.choice(list(terms)), safe='')}"


def canonicalize_search_ad_url(ad_url: str) -> Optional[str]:
    """
    Landing URL of a sponsored link, without following the click.

    Takes the `adurl` query parameter, drops click-tracking parameters that
    the landing page never sees, and unwraps DoubleClick search redirects.
    None when no destination can be extracted.
    """
    try:
        values = parse_qs(urlsplit(ad_url).query).get("adurl")
        if not values:
            logger.debug("No adurl in search ad link %s", ad_url)
            return None

        destination = unquote(values[0])
        parts = urlsplit(destination)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            return None
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in AD_TRACKING_PARAMS
        ]
        destination = urlunsplit(parts._replace(query=urlencode(query)))
    except ValueError as exc:
        logger.debug("Could not canonicalize search ad link %s: %s", ad_url, exc)
        return None

    if destination.startswith(DOUBLECLICK_CLICK_PREFIX):
        nested = parse_qs(urlsplit(destination).query).get("ds_dest_url")
        if not nested:
            logger.debug("DoubleClick link without ds_dest_url: %s", destination)
            return destination
        return nested[0]
    return destination


def dedupe_ads(ads: Sequence[SearchAd]) -> list[SearchAd]:
    """Unique by link; the last ad seen for a link wins."""
    unique: dict[str, SearchAd] = {}
    for ad in ads:
        if ad.link:
            unique[ad.link] = ad
    return list(unique.values())


class SearchAdHunter(BaseHunter):
    hunt_type = HuntType.SEARCH_AD

    def __init__(
        self,
        url_classifier,
        engine,
        store,
        browsers: BrowserManager,
        database,
        *,
        search_sites: Sequence[str],
        search_terms: Sequence[str],
        frame_timeout: float = 30.0,
        settle_seconds: float = 20.0,
        batch_size: int = BATCH_SIZE,
    ):
        super().__init__(url_classifier, engine, store)
        self.browsers = browsers
        self.database = database
        self.search_sites = list(search_sites)
        self.search_terms = list(search_terms)
        self.frame_timeout = frame_timeout
        self.settle_seconds = settle_seconds
        self.batch_size = max(1, int(batch_size))

    def generate_search_url(self) -> str:
        return generate_search_url(self.search_sites, self.search_terms)

    async def hunt(self) -> bool:
        search_url = self.generate_search_url()
        try:
            found = await self.collect_ads(search_url)
        except (PlaywrightError, BrowserUnavailableError) as exc:
            logger.warning("Search ad hunt on %s failed: %s", search_url, exc)
            return False

        ads = dedupe_ads(found)
        logger.info("Found %d search ad(s), %d unique, on %s", len(found), len(ads), search_url)

        succeeded = failed = 0
        total_batches = (len(ads) + self.batch_size - 1) // self.batch_size
        for index in range(0, len(ads), self.batch_size):
            batch = ads[index:index + self.batch_size]
            results = await asyncio.gather(*(self.handle_ad(ad) for ad in batch), return_exceptions=True)
            for ad, result in zip(batch, results):
                if isinstance(result, Exception):
                    failed += 1
                    logger.warning("Failed to process search ad %s: %s", ad.link, result)
                else:
                    succeeded += 1
            logger.debug("Search ad batch %d/%d done", index // self.batch_size + 1, total_batches)

        logger.info("Search ad processing complete. Success: %d, Failed: %d", succeeded, failed)
        return True

    async def collect_ads(self, search_url: str) -> list[SearchAd]:
        # No user agent override: a spoofed UA stops the ad frames loading.
        ads: list[SearchAd] = []
        async with self.browsers.page() as page:
            await page.goto(search_url)
            await page.wait_for_function(AD_FRAME_READY_SCRIPT, timeout=self.frame_timeout * 1000)
            await asyncio.sleep(self.settle_seconds)

            for frame in page.frames:
                if AD_FRAME_HOST not in frame.url:
                    continue
                try:
                    entries = await frame.evaluate(EXTRACT_ADS_SCRIPT)
                except PlaywrightError as exc:
                    logger.debug("Failed to read ad frame %s: %s", frame.url, exc)
                    continue
                ads.extend(
                    SearchAd(link=entry["link"], text=entry.get("text") or "")
                    for entry in entries
                    if entry.get("link")
                )
        return ads

    async def handle_ad(self, ad: SearchAd):
        destination = canonicalize_search_ad_url(ad.link)
        if destination is None or not is_http_url(destination):
            logger.debug("No usable destination for search ad %s", ad.link)
            return None

        if await self.is_known_scam(self.database, destination):
            return None

        return await self.process_candidate(
            destination,
            AD_REFERER,
            ad_text=ad.text,
            enroll_url=destination,
        )
