"""Netcraft reporter for CloakWatch."""

import logging

from .base import BaseHTTPReporter, RateLimitError, ReportResult, ReportStatus

logger = logging.getLogger(__name__)


class NetcraftReporter(BaseHTTPReporter):
    """
    Netcraft report API.

    Accepts many URLs per request and needs no account, so it is fed by the
    batch queue without a per-interval cap.
    """

    platform_name = "netcraft"
    batched = True
    # Netcraft's own Android extension identifies itself this way
    user_agent = "Dalvik/2.1.0 (Linux; U; Android 9; SM-G960N Build/PQ3A.190705.06121522)"

    API_URL = "https://report.netcraft.com/api/v3/report/urls"

    def __init__(self, reporter_email: str = "", source: str = ""):
        super().__init__()
        # "Abuse Desk <abuse@example.org>" -> "abuse@example.org"
        _, _, bracketed = reporter_email.partition("<")
        self.reporter_email = bracketed.rstrip(">").strip() if bracketed else reporter_email.strip()
        self.source = source
        self._configured = True

    def build_payload(self, urls: list[str]) -> dict:
        payload = {"urls": [{"url": url} for url in urls]}
        if self.reporter_email:
            payload["email"] = self.reporter_email
        if self.source:
            payload["source"] = self.source
        return payload

    async def _do_submit(self, urls: list[str]) -> ReportResult:
        resp = await self._post_json(
            self.API_URL,
            self.build_payload(urls),
            headers={"Accept": "application/json"},
        )

        if resp.status_code in (200, 201, 202):
            uuid = ""
            try:
                uuid = str(resp.json().get("uuid") or "")
            except ValueError:
                pass
            return self._submitted(
                urls,
                "Submitted to Netcraft" + (f" (UUID: {uuid})" if uuid else ""),
                report_id=uuid or None,
            )

        if resp.status_code == 400 and "duplicate" in resp.text.lower():
            return self._result(urls, ReportStatus.DUPLICATE, message="URL already reported to Netcraft")

        if resp.status_code == 429:
            raise RateLimitError(int(resp.headers.get("Retry-After", 60)))

        resp.raise_for_status()
        return self._result(urls, ReportStatus.FAILED, message=f"Unexpected response: {resp.status_code}")
