"""Shared reporter types and the HTTP submission wrapper."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

import httpx

logger = logging.getLogger(__name__)


class ReportStatus(str, Enum):
    """Outcome of one submission to one service."""

    SUBMITTED = "submitted"
    DUPLICATE = "duplicate"  # service already knew the URL
    FAILED = "failed"
    SKIPPED = "skipped"  # not configured, or nothing to send
    RATE_LIMITED = "rate_limited"  # dropped for this round


@dataclass
class ReportResult:
    platform: str
    status: ReportStatus
    urls: tuple[str, ...] = ()
    report_id: Optional[str] = None
    message: Optional[str] = None
    retry_after: Optional[int] = None
    submitted_at: Optional[datetime] = None

    def __post_init__(self):
        if self.status == ReportStatus.SUBMITTED and not self.submitted_at:
            self.submitted_at = datetime.now()

    @property
    def ok(self) -> bool:
        return self.status in (ReportStatus.SUBMITTED, ReportStatus.DUPLICATE)


class ReporterError(Exception):
    """Raised by `_do_submit()` implementations; turned into a FAILED result."""


class RateLimitError(ReporterError):
    def __init__(self, retry_after: int, message: str = "Rate limit exceeded"):
        self.retry_after = retry_after
        self.message = message
        super().__init__(f"{message}, retry after {retry_after}s")


class APIError(ReporterError):
    """The service answered, but rejected the submission."""

    def __init__(self, status_code: int, message: str, response_body: str = ""):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"{status_code}: {message}")


class BaseReporter(ABC):
    """One blocklist or abuse service that accepts suspect URLs."""

    platform_name: str = "unknown"
    # Multi-URL services are fed through the batch queue
    batched: bool = False

    def __init__(self):
        self._configured = False

    @abstractmethod
    async def submit(self, urls: list[str]) -> ReportResult:
        ...

    def is_configured(self) -> bool:
        return self._configured

    def _result(self, urls: Iterable[str], status: ReportStatus, **fields) -> ReportResult:
        return ReportResult(platform=self.platform_name, status=status, urls=tuple(urls), **fields)

    def skipped(self, urls: list[str], reason: str) -> ReportResult:
        return self._result(urls, ReportStatus.SKIPPED, message=reason)


class BaseHTTPReporter(BaseReporter):
    """
    Reporter backed by a JSON-over-HTTP API.

    Subclasses implement `_do_submit()`; `submit()` filters empty input,
    checks configuration and maps transport failures onto `ReportResult`.
    """

    timeout_seconds: float = 30.0
    user_agent: str = "CloakWatch/1.0"

    def __init__(self, proxy_url: str = ""):
        super().__init__()
        self.proxy_url = proxy_url
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            options: dict[str, Any] = {
                "timeout": httpx.Timeout(self.timeout_seconds),
                "headers": {"User-Agent": self.user_agent},
                "follow_redirects": True,
            }
            if self.proxy_url:
                options["proxy"] = self.proxy_url
            self._client = httpx.AsyncClient(**options)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def submit(self, urls: list[str]) -> ReportResult:
        urls = [u for u in urls if u]
        if not urls:
            return self.skipped(urls, "Nothing to submit")
        if not self.is_configured():
            return self.skipped(urls, f"{self.platform_name} not configured")

        try:
            return await self._do_submit(urls)
        except httpx.TimeoutException:
            return self._result(urls, ReportStatus.FAILED, message="Request timed out")
        except RateLimitError as e:
            return self._result(urls, ReportStatus.RATE_LIMITED, message=e.message, retry_after=e.retry_after)
        except httpx.HTTPStatusError as e:
            return self._status_failure(urls, e.response)
        except (httpx.HTTPError, APIError) as e:
            logger.warning("%s submission failed: %s", self.platform_name, e)
            return self._result(urls, ReportStatus.FAILED, message=str(e))

    def _status_failure(self, urls: list[str], response: httpx.Response) -> ReportResult:
        code = response.status_code
        if code == 429:
            wait = int(response.headers.get("Retry-After", 60))
            return self._result(
                urls, ReportStatus.RATE_LIMITED, message=f"Rate limited (retry after {wait}s)", retry_after=wait
            )
        kind = "API error" if 400 <= code < 500 else "Server error"
        return self._result(urls, ReportStatus.FAILED, message=f"{kind}: {code}")

    @abstractmethod
    async def _do_submit(self, urls: list[str]) -> ReportResult:
        ...

    async def _post_json(self, url: str, data: Any, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        client = await self._get_client()
        return await client.post(url, json=data, headers=headers)

    def _submitted(self, urls: list[str], message: str, report_id: Optional[str] = None) -> ReportResult:
        return self._result(urls, ReportStatus.SUBMITTED, report_id=report_id, message=message)
