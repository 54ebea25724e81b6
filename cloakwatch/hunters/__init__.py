"""Hunting pipelines for CloakWatch."""

from .ad_network import AdNetworkHunter, canonicalize_ad_network_url
from .base import BaseHunter
from .search_ads import SearchAdHunter, canonicalize_search_ad_url, generate_search_url
from .typosquat import TyposquatHunter

__all__ = [
    "AdNetworkHunter",
    "BaseHunter",
    "SearchAdHunter",
    "TyposquatHunter",
    "canonicalize_ad_network_url",
    "canonicalize_search_ad_url",
    "generate_search_url",
]
