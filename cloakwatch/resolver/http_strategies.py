"""Header- and body-based redirect strategies over httpx."""

from __future__ import annotations

import html as html_lib
import json
import logging
import re
from typing import Optional
from urllib.parse import urljoin

import httpx

logger = logging.getLogger(__name__)

META_REFRESH_RE = re.compile(r"<meta[^>]+http-equiv=['\"]?refresh['\"]?[^>]*>", re.IGNORECASE)
SCRIPT_REDIRECT_PATTERNS = (
    re.compile(r"""location\.(?:replace|assign)\(\s*['"]([^'"]+)['"]\s*\)""", re.IGNORECASE),
    re.compile(
        r"""(?:window\.|document\.|top\.|self\.)?location(?:\.href)?\s*=\s*['"]([^'"]+)['"]""",
        re.IGNORECASE,
    ),
    re.compile(r"""window\.open\(\s*['"]([^'"]+)['"]""", re.IGNORECASE),
)


def extract_meta_refresh_url(html: str) -> Optional[str]:
    if not html:
        return None
    match = META_REFRESH_RE.search(html)
    if not match:
        return None
    content_match = re.search(r"content=['\"]?([^'\">]+)", match.group(0), re.IGNORECASE)
    if not content_match:
        return None
    url_match = re.search(r"url\s*=\s*(.+)$", content_match.group(1), re.IGNORECASE)
    if not url_match:
        return None
    return url_match.group(1).strip().strip("'\"") or None


def extract_script_redirect(body: str, base_url: str) -> Optional[str]:
    """First script or meta-refresh redirect target in a page body, made absolute."""
    for pattern in SCRIPT_REDIRECT_PATTERNS:
        match = pattern.search(body or "")
        if match:
            target = html_lib.unescape(match.group(1)).replace("\\/", "/")
            return urljoin(base_url, target)
    meta = extract_meta_refresh_url(body)
    if meta:
        return urljoin(base_url, html_lib.unescape(meta))
    return None


class HttpRedirectStrategies:
    """Proxied, non-following requests with a current browser user agent."""

    def __init__(self, user_agents, proxy_url: str = "", fingerprint: Optional[dict] = None, timeout: float = 30.0):
        self.user_agents = user_agents
        self.proxy_url = proxy_url
        self.fingerprint = fingerprint or {}
        self.timeout = timeout

    def _client(self, user_agent: str) -> httpx.AsyncClient:
        kwargs = {
            "timeout": self.timeout,
            "follow_redirects": False,
            "headers": {"User-Agent": user_agent},
        }
        if self.proxy_url:
            kwargs["proxy"] = self.proxy_url
        return httpx.AsyncClient(**kwargs)

    async def header_redirect(self, url: str) -> Optional[str]:
        user_agent = await self.user_agents.get()
        async with self._client(user_agent) as client:
            resp = await client.post(url)
        location = resp.headers.get("location")
        return urljoin(url, location) if location else None

    async def fingerprint_post(self, url: str) -> Optional[str]:
        user_agent = await self.user_agents.get()
        async with self._client(user_agent) as client:
            resp = await client.post(url, data={"data": json.dumps(self.fingerprint)})
        location = resp.headers.get("location")
        return urljoin(url, location) if location else None

    async def staged_script(self, url: str) -> Optional[str]:
        user_agent = await self.user_agents.get()
        async with self._client(user_agent) as client:
            resp = await client.get(url)

        location = resp.headers.get("location")
        body_target = urljoin(url, location) if location else extract_script_redirect(resp.text, url)
        if not body_target:
            return None

        try:
            hop = await self.header_redirect(body_target)
        except httpx.HTTPError as exc:
            logger.info("Second hop from %s failed: %s", body_target, exc)
            hop = None
        return hop or body_target
