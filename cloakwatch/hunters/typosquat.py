"""Visit typo variants of popular domains and record where they lead."""

from __future__ import annotations

import logging
import random
from typing import Sequence

from ..storage.enums import HuntType
from .base import BaseHunter

logger = logging.getLogger(__name__)


class TyposquatHunter(BaseHunter):
    """One random typosquat domain per cycle. Domains that do not redirect are ignored."""

    hunt_type = HuntType.TYPOSQUAT

    def __init__(self, url_classifier, engine, store, domains: Sequence[str], rng=random):
        super().__init__(url_classifier, engine, store)
        if not domains:
            raise ValueError("typosquat domain list must not be empty")
        self.domains = list(domains)
        self.rng = rng

    def random_typosquat_url(self) -> str:
        domain = self.rng.choice(self.domains)
        if domain.startswith("http"):
            return domain
        return f"http://{domain}"

    async def hunt(self) -> bool:
        url = self.random_typosquat_url()
        logger.info("Checking typosquat domain: %s", url)
        outcome = await self.process_candidate(url, min_path_length=2)
        return outcome is not None
