"""Behavioural and hosting signals that corroborate a classifier verdict."""

from __future__ import annotations

import ipaddress
import logging
import secrets
from dataclasses import asdict, dataclass, fields
from typing import Iterable
from urllib.parse import urlparse

import tldextract
from playwright.async_api import Error as PlaywrightError

from .signal_script import render_signal_script

logger = logging.getLogger(__name__)

ADDITIONAL_THIRD_PARTY_HOSTING: tuple[str, ...] = (
    "web.core.windows.net",
    "surge.sh",
    "glitch.me",
)

# Bundled suffix list snapshot; private suffixes are what mark PaaS hosting.
_psl_extract = tldextract.TLDExtract(suffix_list_urls=(), include_psl_private_domains=True)


@dataclass
class DetectedSignals:
    """Signals collected for a single page visit."""

    fullscreen_requested: bool = False
    keyboard_lock_requested: bool = False
    pointer_lock_requested: bool = False
    is_third_party_hosting: bool = False
    is_ip_address: bool = False
    page_load_frozen: bool = False  # advisory only
    worker_bomb: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    def active(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


def has_weighted_signal(signals: DetectedSignals) -> bool:
    """True when any signal other than the page-freeze advisory is set."""
    return (
        signals.fullscreen_requested
        or signals.keyboard_lock_requested
        or signals.pointer_lock_requested
        or signals.is_third_party_hosting
        or signals.is_ip_address
        or signals.worker_bomb
    )


def check_is_ip_address(host: str) -> bool:
    value = (host or "").strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def check_is_third_party_hosting(
    host: str, extra_suffixes: Iterable[str] = ADDITIONAL_THIRD_PARTY_HOSTING
) -> bool:
    """Host sits under a PSL private suffix or a known PaaS/CDN suffix."""
    hostname = (host or "").strip().lower().rstrip(".")
    if not hostname:
        return False

    if _psl_extract(hostname).is_private:
        return True

    for suffix in extra_suffixes:
        suffix = suffix.strip().lower().strip(".")
        if suffix and (hostname == suffix or hostname.endswith(f".{suffix}")):
            return True
    return False


class SignalDetector:
    """
    Per-visit signal collection.

    install() must be awaited before the page navigates: the hooks have to be
    in place when the page's own scripts first run. State stays in the page
    until collect() pulls it.
    """

    def __init__(self, extra_hosting_suffixes: Iterable[str] = ADDITIONAL_THIRD_PARTY_HOSTING):
        self.extra_hosting_suffixes = tuple(extra_hosting_suffixes)
        self.carrier = f"__{secrets.token_hex(8)}"
        self.signals = DetectedSignals()
        self._installed_pages: set[int] = set()

    async def install(self, page) -> None:
        if id(page) in self._installed_pages:
            return
        await page.add_init_script(render_signal_script(self.carrier))
        self._installed_pages.add(id(page))

    async def collect(self, page) -> DetectedSignals:
        """Pull hook state out of the page and fold it into the current signals."""
        try:
            state = await page.evaluate(f"() => window['{self.carrier}'] || null")
        except PlaywrightError as exc:
            logger.warning("Failed to collect page signals: %s", exc)
            return self.signals

        if state:
            self.signals.fullscreen_requested |= bool(state.get("fullscreenRequested"))
            self.signals.keyboard_lock_requested |= bool(state.get("keyboardLockRequested"))
            self.signals.pointer_lock_requested |= bool(state.get("pointerLockRequested"))
            self.signals.worker_bomb |= bool(state.get("workerBomb"))
            self.signals.page_load_frozen |= bool(state.get("pageLoadFrozen"))
        return self.signals

    def analyze_url(self, url: str) -> DetectedSignals:
        """Static hosting checks for the final URL."""
        try:
            host = urlparse(url).hostname or ""
        except ValueError:
            logger.debug("Skipping hosting checks for invalid URL %r", url)
            return self.signals
        if not host:
            return self.signals

        self.signals.is_ip_address = check_is_ip_address(host)
        if not self.signals.is_ip_address:
            self.signals.is_third_party_hosting = check_is_third_party_hosting(
                host, self.extra_hosting_suffixes
            )
        return self.signals

    async def monitor_page_load(self, page, timeout: float = 30.0) -> None:
        try:
            await page.wait_for_load_state("load", timeout=timeout * 1000)
        except PlaywrightError:
            self.signals.page_load_frozen = True
            logger.info("Page load did not finish within %ss", timeout)

    async def detect_all(self, page, url: str) -> DetectedSignals:
        self.analyze_url(url)
        await self.collect(page)
        return DetectedSignals(**self.signals.to_dict())
