"""Periodic per-service takedown sweep over scam destinations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..analyzer.takedown_checker import SAFEBROWSING_BATCH_LIMIT, DnsStatus, TakedownChecker
from ..storage.enums import TakedownService

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    checked: int = 0
    failed: int = 0
    flagged: int = 0
    unresolvable: int = 0


class TakedownMonitor:
    """
    Re-checks every active TakedownStatus row against SafeBrowsing, Netcraft
    and SmartScreen.

    Each service flag is write-once. NXDOMAIN is terminal: the row is
    deactivated and never checked again by any service. Other failures are
    logged and simply retried on the next sweep.
    """

    def __init__(
        self,
        database,
        checker: TakedownChecker,
        *,
        recheck_hours: float = 4,
        concurrency: int = 10,
        user_agents=None,
    ):
        self.database = database
        self.checker = checker
        self.recheck_seconds = int(recheck_hours * 3600)
        self.concurrency = max(1, int(concurrency))
        self.user_agents = user_agents
        self.last_stats: Optional[SweepStats] = None

    async def sweep(self) -> SweepStats:
        stats = SweepStats()
        rows = await self.database.get_due_takedown_checks(self.recheck_seconds)
        if not rows:
            self.last_stats = stats
            return stats

        if self.user_agents is not None:
            self.checker.user_agent = await self.user_agents.get()

        stats.flagged += await self._sweep_safebrowsing(rows)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(row: dict):
            async with semaphore:
                return await self._check_destination(row)

        results = await asyncio.gather(*(_bounded(row) for row in rows), return_exceptions=True)
        for row, result in zip(rows, results):
            if isinstance(result, Exception):
                stats.failed += 1
                logger.error("Takedown check failed for %s: %s", row.get("destination_url"), result)
                continue
            stats.checked += 1
            if result == "nxdomain":
                stats.unresolvable += 1
            else:
                stats.flagged += result

        logger.info(
            "Takedown sweep: %d checked, %d failed, %d new flag(s), %d unresolvable",
            stats.checked,
            stats.failed,
            stats.flagged,
            stats.unresolvable,
        )
        self.last_stats = stats
        return stats

    async def _sweep_safebrowsing(self, rows: list[dict]) -> int:
        if not self.checker.safebrowsing_api_key:
            return 0

        by_url: dict[str, list[int]] = {}
        for row in rows:
            if row.get("safebrowsing_flagged_at"):
                continue
            by_url.setdefault(row["destination_url"], []).append(row["id"])

        urls = list(by_url)
        flagged = 0
        for start in range(0, len(urls), SAFEBROWSING_BATCH_LIMIT):
            chunk = urls[start:start + SAFEBROWSING_BATCH_LIMIT]
            try:
                matched = await self.checker.check_safebrowsing(chunk)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("SafeBrowsing lookup failed for %d URL(s): %s", len(chunk), exc)
                continue
            for url in matched:
                for status_id in by_url.get(url, []):
                    if await self.database.mark_service_flagged(status_id, TakedownService.SAFEBROWSING):
                        flagged += 1
                        logger.info("SafeBrowsing flagged %s", url)
        return flagged

    async def _check_destination(self, row: dict):
        """Returns "nxdomain" for a newly dead host, else the number of new flags."""
        status_id = row["id"]
        url = row["destination_url"]

        dns = await self.checker.check_dns(url)
        if dns == DnsStatus.NXDOMAIN:
            await self.database.mark_dns_unresolvable(status_id)
            await self.database.touch_last_checked(status_id)
            logger.info("%s no longer resolves; monitoring stopped", url)
            return "nxdomain"

        services: list[TakedownService] = []
        checks = []
        if not row.get("netcraft_flagged_at"):
            services.append(TakedownService.NETCRAFT)
            checks.append(self.checker.check_netcraft(url))
        if not row.get("smartscreen_flagged_at"):
            services.append(TakedownService.SMARTSCREEN)
            checks.append(self.checker.check_smartscreen(url))

        flagged = 0
        results = await asyncio.gather(*checks, return_exceptions=True)
        for service, result in zip(services, results):
            if isinstance(result, Exception):
                logger.warning("%s check failed for %s: %s", service.value, url, result)
                continue
            if result.flagged and await self.database.mark_service_flagged(status_id, service):
                flagged += 1
                logger.info("%s flagged %s", service.value, url)

        await self.database.touch_last_checked(status_id)
        return flagged
