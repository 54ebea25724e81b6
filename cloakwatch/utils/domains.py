"""Host normalization and allowlist matching."""

from __future__ import annotations

from urllib.parse import urlparse


def canonicalize_host(value: str) -> str:
    """
    Normalize a host or URL to a lowercase host key.

    - Lowercase
    - Strip leading "www." and trailing dots
    - Drop port, path, query and fragment
    """
    raw = (value or "").strip()
    if not raw:
        return ""

    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
        host = parsed.hostname or ""
    except ValueError:
        return ""
    host = host.strip().lower().strip(".")
    if host.startswith("www.") and len(host) > 4:
        host = host[4:]
    return host

def normalize_allowlist_entry(value: str) -> str:
    """Normalize an allowlist entry to the canonical host it covers."""
    return canonicalize_host(value)


def allowlist_contains(url_or_host: str, allowlist: set[str]) -> bool:
    """Check if a host is an allowlisted host or one of its subdomains."""
    if not allowlist:
        return False
    host = canonicalize_host(url_or_host)
    if not host:
        return False
    if host in allowlist:
        return True
    # Walk parent hosts: a.b.example.com -> b.example.com -> example.com -> com
    parts = host.split(".")
    return any(".".join(parts[i:]) in allowlist for i in range(1, len(parts)))
