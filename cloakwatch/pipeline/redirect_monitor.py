"""Re-check every monitored source and record where it leads today."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..analyzer.decision import ClassificationDecisionEngine, Decision
from ..utils.domains import allowlist_contains
from .destination_store import DestinationStore, RecordOutcome

logger = logging.getLogger(__name__)


@dataclass
class CheckStats:
    checked: int = 0
    failed: int = 0
    idle: int = 0
    new_scams: int = 0


def pattern_decision(destination: str, matched: bool, allowlist=None) -> Decision:
    """Verdict for sources that still carry a popup regex instead of the classifier."""
    allowlisted = bool(allowlist) and allowlist_contains(destination, allowlist)
    is_scam = matched and not allowlisted
    if allowlisted:
        reason = "allowlisted"
    else:
        reason = "pattern matched" if matched else "pattern did not match"
    return Decision(
        is_scam=is_scam,
        confidence=1.0 if is_scam else 0.0,
        raw_is_scam=matched,
        weighted_signal=False,
        allowlisted=allowlisted,
        reason=reason,
    )


class RedirectMonitor:
    """
    Resolves each Source, classifies the destination and hands the result to
    the DestinationStore. Sources are checked concurrently up to
    `concurrency`; a failing source never aborts the round.
    """

    def __init__(
        self,
        database,
        resolver,
        url_classifier,
        engine: ClassificationDecisionEngine,
        store: DestinationStore,
        *,
        concurrency: int = 10,
    ):
        self.database = database
        self.resolver = resolver
        self.url_classifier = url_classifier
        self.engine = engine
        self.store = store
        self.concurrency = max(1, int(concurrency))
        self.last_stats: Optional[CheckStats] = None

    async def check_all(self) -> CheckStats:
        stats = CheckStats()
        sources = await self.database.list_sources()
        if not sources:
            self.last_stats = stats
            return stats

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(source: dict):
            async with semaphore:
                return await self.check_source(source)

        results = await asyncio.gather(*(_bounded(s) for s in sources), return_exceptions=True)
        for source, result in zip(sources, results):
            if isinstance(result, Exception):
                stats.failed += 1
                logger.warning("Redirect check failed for %s: %s", source["url"], result)
                continue
            stats.checked += 1
            if result is None:
                stats.idle += 1
            elif result.is_new and result.is_scam:
                stats.new_scams += 1

        logger.info(
            "Redirect check: %d checked, %d failed, %d idle, %d new scam(s)",
            stats.checked,
            stats.failed,
            stats.idle,
            stats.new_scams,
        )
        self.last_stats = stats
        return stats

    async def check_source(self, source: dict) -> Optional[RecordOutcome]:
        """None when the source did not redirect anywhere."""
        url = source["url"]
        pattern = source.get("regex_pattern")

        if pattern:
            destination, matched = await self.resolver.resolve_legacy(
                url, pattern, source["resolution_type"]
            )
            if not destination:
                self._log_idle(url)
                return None
            decision = pattern_decision(destination, matched, self.engine.allowlist)
            return await self.store.record_destination(source, destination, decision, [url, destination])

        destination = await self.resolver.resolve(url, source["resolution_type"])
        if not destination:
            self._log_idle(url)
            return None

        classification = await self.url_classifier.classify_url(destination, self.engine)
        if classification is None:
            raise RuntimeError(f"could not classify destination {destination}")

        path = [url] + [hop for hop in classification.inspection.redirect_path if hop != url]
        return await self.store.record_destination(
            source,
            destination,
            classification.decision,
            redirect_path=path,
            signals=classification.inspection.signals,
        )

    @staticmethod
    def _log_idle(url: str) -> None:
        logger.info("Source %s did not go anywhere; it may be switched off", url)
