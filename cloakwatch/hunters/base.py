"""Shared pipeline for hunters: inspect, classify, record."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..analyzer.decision import ClassificationDecisionEngine
from ..analyzer.url_classifier import UrlClassifier
from ..pipeline.destination_store import DestinationStore, RecordOutcome
from ..storage.enums import HuntType

logger = logging.getLogger(__name__)


class BaseHunter(ABC):
    """
    A hunter finds candidate URLs on its own (ad frames, typosquat lists)
    and pushes each one through the same inspect, classify and record path.

    The engine passed in carries the hunting threshold, which is stricter
    than the one used for monitored sources.
    """

    hunt_type: HuntType

    def __init__(
        self,
        url_classifier: UrlClassifier,
        engine: ClassificationDecisionEngine,
        store: DestinationStore,
    ):
        self.url_classifier = url_classifier
        self.engine = engine
        self.store = store

    @property
    def name(self) -> str:
        return self.hunt_type.value

    @abstractmethod
    async def hunt(self) -> bool:
        """Run one hunting cycle. False when it produced nothing."""

    async def process_candidate(
        self,
        initial_url: str,
        referer: Optional[str] = None,
        *,
        ad_text: Optional[str] = None,
        enroll_url: Optional[str] = None,
        min_path_length: int = 0,
    ) -> Optional[RecordOutcome]:
        """
        Visit `initial_url` and record what it turned out to be.

        Returns None when the page could not be loaded or classified, or
        when the redirect path is shorter than `min_path_length`.
        """
        inspection = await self.url_classifier.inspector.inspect(initial_url, referer=referer)
        if not inspection.ok:
            logger.info("[%s] Failed to inspect %s: %s", self.name, initial_url, inspection.error)
            return None

        path = list(inspection.redirect_path)
        if len(path) < min_path_length:
            logger.info("[%s] %s has no meaningful redirects, skipping", self.name, initial_url)
            return None

        classification = await self.url_classifier.classify_inspection(inspection, self.engine)
        if classification is None:
            return None

        return await self.store.record_detection(
            self.hunt_type,
            initial_url,
            classification.final_url,
            path,
            classification.decision,
            signals=inspection.signals,
            ad_text=ad_text,
            enroll_url=enroll_url,
        )

    async def is_known_scam(self, database, initial_url: str) -> bool:
        """Already recorded as a scam under this hunt type; refreshes last_seen."""
        existing = await database.find_detection_by_initial_url(self.hunt_type.value, initial_url)
        if not existing or not existing["is_scam"]:
            return False
        await database.touch_detection(existing["id"])
        logger.info("[%s] Skipping already known scam: %s", self.name, initial_url)
        return True
