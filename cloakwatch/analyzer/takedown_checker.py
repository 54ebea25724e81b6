"""Per-service takedown checks: DNS, SafeBrowsing, Netcraft and SmartScreen."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urlparse

import httpx

from ..utils.urls import origin_of
from .smartscreen import (
    DEFAULT_AUTH_ID,
    NAVIGATE_URL,
    build_authorization,
    build_navigate_payload,
    is_flagged,
)

logger = logging.getLogger(__name__)

SAFEBROWSING_LOOKUP_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"
SAFEBROWSING_BATCH_LIMIT = 500
SAFEBROWSING_THREAT_TYPES = (
    "MALWARE",
    "SOCIAL_ENGINEERING",
    "UNWANTED_SOFTWARE",
    "POTENTIALLY_HARMFUL_APPLICATION",
)
NETCRAFT_CHECK_URL = "https://mirror2.extension.netcraft.com/check_url/v4/{origin}/dodns"

_INLINE_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE}
_INLINE_FLAG_RE = re.compile(r"^\(\?([im]+)\)")


class DnsStatus(str, Enum):
    RESOLVES = "resolves"
    NXDOMAIN = "nxdomain"
    ERROR = "error"  # transient, retried next sweep


@dataclass
class NetcraftVerdict:
    flagged: bool
    pattern_type: Optional[str] = None
    message: Optional[str] = None


@dataclass
class SmartScreenVerdict:
    flagged: bool
    category: Optional[str] = None
    allow: Optional[bool] = None


def compile_netcraft_pattern(encoded: str) -> re.Pattern:
    """
    Decode a base64 PCRE pattern and compile it.

    Leading (?i)/(?m) markers become re flags. Raises ValueError for
    undecodable or uncompilable patterns.
    """
    try:
        pattern = base64.b64decode(encoded, validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"Undecodable pattern: {exc}") from exc

    flags = 0
    while True:
        match = _INLINE_FLAG_RE.match(pattern)
        if not match:
            break
        for letter in match.group(1):
            flags |= _INLINE_FLAGS[letter]
        pattern = pattern[match.end():]
    if not pattern:
        raise ValueError("Empty pattern")

    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ValueError(f"Invalid pattern {pattern!r}: {exc}") from exc


class TakedownChecker:
    """Stateless checks against the services that block scam destinations."""

    def __init__(
        self,
        *,
        safebrowsing_api_key: str = "",
        smartscreen_auth_id: str = DEFAULT_AUTH_ID,
        user_agent: str = "",
        timeout: float = 15.0,
    ):
        self.safebrowsing_api_key = safebrowsing_api_key
        self.smartscreen_auth_id = smartscreen_auth_id or DEFAULT_AUTH_ID
        self.user_agent = user_agent
        self.timeout = timeout

    async def check_dns(self, url: str) -> DnsStatus:
        host = urlparse(url).hostname
        if not host:
            return DnsStatus.ERROR

        loop = asyncio.get_running_loop()
        try:
            await loop.getaddrinfo(host, 443)
        except socket.gaierror as exc:
            if exc.errno == socket.EAI_NONAME:
                return DnsStatus.NXDOMAIN
            logger.warning("DNS lookup for %s failed transiently: %s", host, exc)
            return DnsStatus.ERROR
        except OSError as exc:
            logger.warning("DNS lookup for %s failed transiently: %s", host, exc)
            return DnsStatus.ERROR
        return DnsStatus.RESOLVES

    async def check_safebrowsing(self, urls: Iterable[str]) -> set[str]:
        """Return the subset of urls with a SafeBrowsing threat match."""
        urls = list(dict.fromkeys(urls))
        if not urls or not self.safebrowsing_api_key:
            return set()
        if len(urls) > SAFEBROWSING_BATCH_LIMIT:
            raise ValueError(f"SafeBrowsing lookups take at most {SAFEBROWSING_BATCH_LIMIT} URLs")

        body = {
            "client": {"clientId": "cloakwatch", "clientVersion": "1.0"},
            "threatInfo": {
                "threatTypes": list(SAFEBROWSING_THREAT_TYPES),
                "platformTypes": ["ANY_PLATFORM"],
                "threatEntryTypes": ["URL"],
                "threatEntries": [{"url": url} for url in urls],
            },
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                SAFEBROWSING_LOOKUP_URL,
                params={"key": self.safebrowsing_api_key},
                json=body,
            )
            resp.raise_for_status()
            data = resp.json() or {}

        wanted = set(urls)
        matched = set()
        for match in data.get("matches") or []:
            url = ((match or {}).get("threat") or {}).get("url")
            if url in wanted:
                matched.add(url)
        return matched

    async def check_netcraft(self, url: str) -> NetcraftVerdict:
        origin = origin_of(url)
        encoded_origin = base64.urlsafe_b64encode(origin.encode("utf-8")).decode("ascii")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(NETCRAFT_CHECK_URL.format(origin=encoded_origin))
            resp.raise_for_status()
            data = resp.json() or {}

        for entry in data.get("patterns") or []:
            try:
                regex = compile_netcraft_pattern(entry.get("pattern") or "")
            except ValueError as exc:
                logger.warning("Skipping Netcraft pattern for %s: %s", origin, exc)
                continue
            if regex.search(url):
                return NetcraftVerdict(
                    flagged=True,
                    pattern_type=entry.get("type"),
                    message=entry.get("message_override"),
                )
        return NetcraftVerdict(flagged=False)

    async def check_smartscreen(self, url: str) -> SmartScreenVerdict:
        payload = build_navigate_payload(url, self.user_agent)
        headers = {
            "Authorization": build_authorization(payload, self.smartscreen_auth_id),
            "Content-Type": "application/json; charset=utf-8",
        }
        if self.user_agent:
            headers["User-Agent"] = self.user_agent

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(NAVIGATE_URL, content=payload.encode("utf-8"), headers=headers)
            resp.raise_for_status()
            data = resp.json() or {}

        return SmartScreenVerdict(
            flagged=is_flagged(data),
            category=data.get("responseCategory"),
            allow=data.get("allow"),
        )
