"""Shared storage enums."""

from __future__ import annotations

from enum import Enum


class TakedownService(str, Enum):
    """Services whose block status is tracked per destination."""

    SAFEBROWSING = "safebrowsing"
    NETCRAFT = "netcraft"
    SMARTSCREEN = "smartscreen"

    @property
    def column(self) -> str:
        return f"{self.value}_flagged_at"


class HuntType(str, Enum):
    """Hunting pipeline that produced a detection."""

    SEARCH_AD = "search_ad"
    TYPOSQUAT = "typosquat"
    AD_NETWORK = "ad_network"


class SourceOrigin(str, Enum):
    """How a monitored source was registered."""

    MANUAL = "manual"
    REDIRECT_MONITOR = "redirect_monitor"
    SEARCH_AD = "search_ad"
    TYPOSQUAT = "typosquat"
    AD_NETWORK = "ad_network"
