"""Current desktop Chrome user agent, refreshed from the Chromium release feed."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

CHROME_RELEASES_URL = (
    "https://chromiumdash.appspot.com/fetch_releases?channel=Stable&platform=Windows&num=1&offset=0"
)
USER_AGENT_TEMPLATE = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/{version}.0.0.0 Safari/537.36"
)
FALLBACK_CHROME_MAJOR = 130
CACHE_TTL_SECONDS = 24 * 60 * 60
FAILURE_BACKOFF_SECONDS = 5 * 60


class UserAgentProvider:
    """
    Caches the latest stable Chrome major version for a day.

    After a failed lookup the cached or fallback agent is returned without
    another request until the failure back-off expires.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        timeout: float = 10.0,
        failure_backoff_seconds: float = FAILURE_BACKOFF_SECONDS,
    ):
        self.ttl_seconds = ttl_seconds
        self.failure_backoff_seconds = failure_backoff_seconds
        self.timeout = timeout
        self._user_agent: str = ""
        self._fetched_at: float = 0.0
        self._failed_at: Optional[float] = None

    @staticmethod
    def build(major_version: int) -> str:
        return USER_AGENT_TEMPLATE.format(version=int(major_version))

    @property
    def fallback(self) -> str:
        return self.build(FALLBACK_CHROME_MAJOR)

    def cached(self) -> str:
        """Last known user agent without touching the network."""
        return self._user_agent or self.fallback

    async def _fetch_major_version(self) -> int:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(CHROME_RELEASES_URL)
            resp.raise_for_status()
            releases = resp.json()
        version = str(releases[0]["version"])
        return int(version.split(".")[0])

    async def get(self) -> str:
        """Return a Windows Chrome user agent, refreshing when the cache is stale."""
        now = time.monotonic()
        if self._user_agent and now - self._fetched_at < self.ttl_seconds:
            return self._user_agent
        if self._failed_at is not None and now - self._failed_at < self.failure_backoff_seconds:
            return self.cached()

        try:
            major = await self._fetch_major_version()
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            self._failed_at = now
            logger.warning("Chrome version lookup failed, using fallback: %s", exc)
            return self.cached()

        self._user_agent = self.build(major)
        self._fetched_at = now
        self._failed_at = None
        logger.info("Using Chrome %s user agent", major)
        return self._user_agent
