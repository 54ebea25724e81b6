"""Auto-enrol cloaker URLs as monitored sources."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from playwright.async_api import Error as PlaywrightError

from ..analyzer.browser import BrowserUnavailableError
from ..analyzer.decision import ClassificationDecisionEngine
from ..storage.enums import SourceOrigin
from ..utils.urls import is_http_url
from .errors import RedirectError
from .resolver import RedirectResolver
from .types import ENROLLMENT_ORDER

logger = logging.getLogger(__name__)

_STRATEGY_ERRORS = (httpx.HTTPError, PlaywrightError, BrowserUnavailableError, RedirectError)


class SourceEnroller:
    """
    Tries each redirect strategy on a cloaker candidate until one leads to a
    page the classifier confirms as a scam, then stores it as a Source.
    """

    def __init__(
        self,
        database,
        resolver: RedirectResolver,
        url_classifier,
        engine: ClassificationDecisionEngine,
        alerts=None,
    ):
        self.database = database
        self.resolver = resolver
        self.url_classifier = url_classifier
        self.engine = engine
        self.alerts = alerts

    async def try_enroll(self, candidate: str, origin: SourceOrigin | str = SourceOrigin.MANUAL) -> bool:
        """True when the candidate is (now) monitored."""
        if not is_http_url(candidate):
            logger.info("Not enrolling non-HTTP candidate %r", candidate)
            return False

        if await self.database.source_host_exists(candidate):
            logger.info("Host of %s is already monitored", candidate)
            return True

        origin_value = SourceOrigin(origin).value
        for redirect_type in ENROLLMENT_ORDER:
            try:
                destination = await self.resolver.resolve(candidate, redirect_type)
            except _STRATEGY_ERRORS as exc:
                logger.info("Strategy %s failed for %s: %s", redirect_type.value, candidate, exc)
                continue
            if not destination:
                continue

            classification = await self.url_classifier.classify_url(destination, self.engine)
            if classification is None or not classification.decision.is_scam:
                logger.info(
                    "Destination %s via %s is not a confirmed scam", destination, redirect_type.value
                )
                continue

            source_id = await self.database.add_source(candidate, redirect_type.value, origin=origin_value)
            if source_id is None:
                return True
            logger.info("Enrolled %s as %s source (%s)", candidate, redirect_type.value, origin_value)
            await self._announce(candidate, redirect_type.value, origin_value)
            return True

        logger.info("No strategy led %s to a confirmed scam", candidate)
        return False

    async def _announce(self, candidate: str, redirect_type: str, origin: str) -> None:
        if self.alerts is None:
            return
        await self.alerts.send_cloaker_added(candidate, redirect_type, origin)


def cloaker_candidate(redirect_path: Optional[list[str]]) -> Optional[str]:
    """The hop immediately before the final destination."""
    if not redirect_path or len(redirect_path) < 2:
        return None
    return redirect_path[-2]
