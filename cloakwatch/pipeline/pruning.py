"""Drop sources that are dead or have stopped producing scams."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..analyzer.takedown_checker import DnsStatus

logger = logging.getLogger(__name__)


@dataclass
class PruneStats:
    unresolvable: int = 0
    inactive: int = 0


class SourcePruner:
    def __init__(self, database, checker, *, inactive_days: int = 5):
        self.database = database
        self.checker = checker
        self.inactive_days = inactive_days

    async def prune(self) -> PruneStats:
        stats = PruneStats()

        for source in await self.database.list_sources():
            status = await self.checker.check_dns(source["url"])
            if status != DnsStatus.NXDOMAIN:
                continue
            if await self.database.remove_source_by_id(source["id"]):
                stats.unresolvable += 1
                logger.info("Pruned source %s: host no longer resolves", source["url"])

        for source in await self.database.get_inactive_sources(self.inactive_days):
            if await self.database.remove_source_by_id(source["id"]):
                stats.inactive += 1
                logger.info(
                    "Pruned source %s: no scam destination in %d days",
                    source["url"],
                    self.inactive_days,
                )

        logger.info(
            "Source pruning removed %d unresolvable and %d inactive source(s)",
            stats.unresolvable,
            stats.inactive,
        )
        return stats
