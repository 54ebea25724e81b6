"""Inspect a URL, classify its screenshot and apply the decision engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .classifier import ClassifierError, ScreenshotClassifier
from .decision import ClassificationDecisionEngine, ClassifierVerdict, Decision
from .inspector import Inspection, PageInspector

logger = logging.getLogger(__name__)


@dataclass
class Classification:
    inspection: Inspection
    verdict: ClassifierVerdict
    decision: Decision

    @property
    def final_url(self) -> str:
        return self.inspection.final_url or self.inspection.initial_url


class UrlClassifier:
    def __init__(self, inspector: PageInspector, classifier: ScreenshotClassifier, evidence=None):
        self.inspector = inspector
        self.classifier = classifier
        self.evidence = evidence

    async def classify_url(
        self,
        url: str,
        engine: ClassificationDecisionEngine,
        referer: Optional[str] = None,
    ) -> Optional[Classification]:
        """None when the page could not be loaded or classified."""
        inspection = await self.inspector.inspect(url, referer=referer)
        return await self.classify_inspection(inspection, engine)

    async def classify_inspection(
        self,
        inspection: Inspection,
        engine: ClassificationDecisionEngine,
    ) -> Optional[Classification]:
        if not inspection.ok:
            return None

        url = inspection.initial_url
        try:
            verdict = await self.classifier.classify(inspection.screenshot)
        except ClassifierError as exc:
            logger.warning("Classification of %s failed: %s", url, exc)
            return None

        final_url = inspection.final_url or url
        decision = engine.decide(final_url, verdict, inspection.signals)
        logger.info(
            "%s -> %s: %s (%.2f%%, %s)",
            url,
            final_url,
            "SCAM" if decision.is_scam else "not scam",
            verdict.confidence * 100,
            decision.reason,
        )

        if self.evidence is not None:
            try:
                await self.evidence.save_sample(
                    final_url, inspection.screenshot, inspection.html, verdict.is_scam, verdict.confidence
                )
            except OSError as exc:
                logger.warning("Failed to save training sample for %s: %s", final_url, exc)

        return Classification(inspection=inspection, verdict=verdict, decision=decision)
