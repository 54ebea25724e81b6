"""Google Safe Browsing client report (the extension's crx-report endpoint)."""

import logging

from .base import BaseHTTPReporter, ReportResult

logger = logging.getLogger(__name__)


class SafeBrowsingReporter(BaseHTTPReporter):
    """
    Reports a site the way the Safe Browsing browser extension does.

    The endpoint rejects non-browser clients, so the request goes out with a
    current Chrome user agent through the configured proxy.
    """

    platform_name = "google_safebrowsing"

    API_URL = "https://safebrowsing.google.com/safebrowsing/clientreport/crx-report"

    def __init__(self, user_agents, proxy_url: str = ""):
        super().__init__(proxy_url=proxy_url)
        self.user_agents = user_agents
        self._configured = True

    async def _do_submit(self, urls: list[str]) -> ReportResult:
        user_agent = await self.user_agents.get()
        for url in urls:
            resp = await self._post_json(self.API_URL, [url], headers={"User-Agent": user_agent})
            resp.raise_for_status()
        return self._submitted(urls, f"Reported {len(urls)} URL(s) to Google Safe Browsing")
