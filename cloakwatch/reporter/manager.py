"""Fan a confirmed threat out to every reporting service."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, TYPE_CHECKING

from .base import BaseReporter, ReportResult
from .batch_queue import BatchReportQueue

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)


class ReportManager:
    """
    Direct reporters are called immediately; batched reporters are fed
    through the BatchReportQueue, which owns their rate limits.
    """

    def __init__(
        self,
        reporters: list[BaseReporter],
        batch_queue: BatchReportQueue,
        batch_limits: Optional[dict[str, int]] = None,
    ):
        self.batch_queue = batch_queue
        self.direct: dict[str, BaseReporter] = {}
        self.batched: dict[str, BaseReporter] = {}

        limits = batch_limits or {}
        for reporter in reporters:
            if not reporter.is_configured():
                logger.info("Reporter %s not configured, skipping", reporter.platform_name)
                continue
            if reporter.batched:
                self.batched[reporter.platform_name] = reporter
                batch_queue.register(
                    reporter.platform_name,
                    reporter.submit,
                    max_per_interval=limits.get(reporter.platform_name),
                )
            else:
                self.direct[reporter.platform_name] = reporter
            logger.info("Initialized %s reporter", reporter.platform_name)

    @classmethod
    def from_config(cls, config: "Config", user_agents, batch_queue: BatchReportQueue) -> "ReportManager":
        from .crdf import CrdfLabsReporter
        from .netcraft import NetcraftReporter
        from .safebrowsing import SafeBrowsingReporter
        from .urlscan import UrlscanReporter

        reporters: list[BaseReporter] = [
            SafeBrowsingReporter(user_agents, proxy_url=config.proxy_url),
            UrlscanReporter(config.urlscan_api_key),
            NetcraftReporter(config.netcraft_report_email, config.netcraft_report_source),
            CrdfLabsReporter(config.crdf_labs_api_key),
        ]
        return cls(
            reporters,
            batch_queue,
            batch_limits={CrdfLabsReporter.platform_name: config.crdf_max_per_interval},
        )

    @property
    def platforms(self) -> list[str]:
        return sorted([*self.direct, *self.batched])

    async def report_site(self, url: str) -> list[ReportResult]:
        """Report a scam URL everywhere; one failing service never blocks the others."""
        for name in self.batched:
            self.batch_queue.add(name, url)

        names = list(self.direct)
        outcomes = await asyncio.gather(
            *(self.direct[name].submit([url]) for name in names),
            return_exceptions=True,
        )

        results: list[ReportResult] = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Reporting %s to %s failed: %s", url, name, outcome)
                continue
            results.append(outcome)
            if not outcome.ok:
                logger.warning("%s: %s (%s)", name, outcome.status.value, outcome.message)

        return results

    async def close(self) -> None:
        for reporter in [*self.direct.values(), *self.batched.values()]:
            close = getattr(reporter, "close", None)
            if close is not None:
                await close()
