"""Dispatch a source URL to its redirect strategy."""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Optional

from .browser_strategies import BrowserRedirectStrategies
from .errors import InvalidPatternError, UnsupportedRedirectTypeError
from .http_strategies import HttpRedirectStrategies
from .types import RedirectType

logger = logging.getLogger(__name__)

Strategy = Callable[[str], Awaitable[Optional[str]]]


def compile_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


class RedirectResolver:
    """
    Resolves a source URL to the URL it redirects to.

    Every RedirectType has exactly one strategy; a missing entry is caught
    when the resolver is built, not when a source of that type first runs.
    Network and browser errors propagate to the caller.
    """

    def __init__(
        self,
        user_agents,
        browsers=None,
        *,
        proxy_url: str = "",
        fingerprint: Optional[dict] = None,
        timeout: float = 30.0,
        http: Optional[HttpRedirectStrategies] = None,
        browser: Optional[BrowserRedirectStrategies] = None,
    ):
        self.http = http or HttpRedirectStrategies(
            user_agents, proxy_url=proxy_url, fingerprint=fingerprint, timeout=timeout
        )
        self.browser = browser
        if self.browser is None and browsers is not None:
            self.browser = BrowserRedirectStrategies(browsers, user_agents, navigation_timeout=timeout)

        self._strategies: dict[RedirectType, Strategy] = {
            RedirectType.HTTP: self.http.header_redirect,
            RedirectType.FINGERPRINT_POST: self.http.fingerprint_post,
            RedirectType.STAGED_SCRIPT: self.http.staged_script,
            RedirectType.BROWSER: self._browser_strategy("browser"),
            RedirectType.BROWSER_REFERRED: self._browser_strategy("browser_referred"),
        }
        missing = set(RedirectType) - set(self._strategies)
        if missing:
            raise RuntimeError(f"No strategy for redirect types: {sorted(m.value for m in missing)}")

    def _browser_strategy(self, name: str) -> Strategy:
        async def _run(url: str) -> Optional[str]:
            if self.browser is None:
                raise UnsupportedRedirectTypeError(f"{name} (no browser configured)")
            return await getattr(self.browser, name)(url)

        return _run

    async def resolve(self, url: str, redirect_type: RedirectType | str) -> Optional[str]:
        """Destination URL, or None when the source did not redirect."""
        kind = RedirectType.parse(redirect_type)
        destination = await self._strategies[kind](url)
        logger.debug("Resolved %s via %s -> %s", url, kind.value, destination)
        return destination

    async def resolve_legacy(
        self,
        url: str,
        pattern: str,
        redirect_type: RedirectType | str,
    ) -> tuple[Optional[str], bool]:
        """Resolve and test the destination against the source's popup pattern."""
        compiled = compile_pattern(pattern)
        kind = RedirectType.parse(redirect_type)
        destination = await self.resolve(url, kind)
        if not destination:
            return None, False
        return destination, compiled.search(destination) is not None
