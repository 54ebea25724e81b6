"""URL helpers shared by the resolver, hunters and destination dedup."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

# Query keys that change between visits to the same landing page.
DEFAULT_VOLATILE_QUERY_PARAMS: tuple[str, ...] = (
    "gclid",
    "fbclid",
    "msclkid",
    "sessionid",
    "session",
    "sid",
    "token",
    "ts",
    "t",
    "cb",
    "rnd",
    "nonce",
    "clickid",
    "subid",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)


def is_http_url(value: str) -> bool:
    """True when value parses as an absolute http(s) URL with a host."""
    try:
        parsed = urlparse((value or "").strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def require_http_url(value: str) -> str:
    """Return the stripped URL or raise ValueError."""
    url = (value or "").strip()
    if not is_http_url(url):
        raise ValueError(f"Not an absolute http(s) URL: {value!r}")
    return url


def host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def origin_of(url: str) -> str:
    """Return scheme://host[:port]/ for a URL."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/"


def strip_query_parameters(url: str, params) -> str:
    """Drop the given query keys (case-insensitive) and the fragment."""
    parsed = urlparse(url)
    drop = {p.lower() for p in params}
    kept = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key.lower() not in drop
    ]
    return urlunparse(parsed._replace(query=urlencode(kept), fragment=""))


def normalize_url(url: str, volatile_params=DEFAULT_VOLATILE_QUERY_PARAMS) -> str:
    """Lowercase scheme/host and strip volatile query keys."""
    parsed = urlparse(url.strip())
    parsed = parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower())
    return strip_query_parameters(urlunparse(parsed), volatile_params)


def destination_match_key(url: str) -> str:
    """
    Key used to collapse trivially-varying destination URLs.

    Two URLs share a key when their host and path are equal; query strings and
    fragments never participate.
    """
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower().strip(".")
    path = parsed.path or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return f"{host}{path}"
