"""CRDF Labs threat center reporter."""

import logging

from .base import APIError, BaseHTTPReporter, RateLimitError, ReportResult

logger = logging.getLogger(__name__)


class CrdfLabsReporter(BaseHTTPReporter):
    """
    CRDF Labs `submit_url` API.

    The service caps submissions per minute, so it is registered on the
    batch queue with a per-interval limit.
    """

    platform_name = "crdf_labs"
    batched = True

    API_URL = "https://threatcenter.crdf.fr/api/v0/submit_url.json"

    def __init__(self, api_key: str = ""):
        super().__init__()
        self.api_key = api_key
        self._configured = bool(api_key)

    async def _do_submit(self, urls: list[str]) -> ReportResult:
        resp = await self._post_json(
            self.API_URL,
            {"token": self.api_key, "method": "submit_url", "urls": list(urls)},
        )
        if resp.status_code == 429:
            raise RateLimitError(int(resp.headers.get("Retry-After", 60)))
        resp.raise_for_status()

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("error"):
            raise APIError(resp.status_code, str(data.get("message") or data["error"]), resp.text[:200])
        return self._submitted(urls, f"Submitted {len(urls)} URL(s) to CRDF Labs")
