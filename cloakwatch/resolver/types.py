"""Redirect resolution strategy tags."""

from __future__ import annotations

from enum import Enum


class RedirectType(str, Enum):
    """Closed set of ways a source URL can hide its destination."""

    HTTP = "http"  # Location header on a non-followed POST
    FINGERPRINT_POST = "fingerprint_post"  # as HTTP, posting a browser fingerprint
    STAGED_SCRIPT = "staged_script"  # script/meta redirect in the body, then a header hop
    BROWSER = "browser"  # full navigation in a headless browser
    BROWSER_REFERRED = "browser_referred"  # as BROWSER with an ad-network referer

    @classmethod
    def parse(cls, value: "RedirectType | str") -> "RedirectType":
        from .errors import UnsupportedRedirectTypeError

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedRedirectTypeError(value) from None


# Order tried when auto-enrolling a cloaker candidate
ENROLLMENT_ORDER: tuple[RedirectType, ...] = (
    RedirectType.HTTP,
    RedirectType.STAGED_SCRIPT,
    RedirectType.BROWSER,
    RedirectType.BROWSER_REFERRED,
)
