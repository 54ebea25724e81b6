"""Resolver error types."""


class RedirectError(Exception):
    """Base error for redirect resolution."""


class UnsupportedRedirectTypeError(RedirectError, ValueError):
    """Unknown redirect type tag."""

    def __init__(self, redirect_type):
        self.redirect_type = redirect_type
        super().__init__(f"Unsupported redirect type: {redirect_type!r}")


class InvalidPatternError(RedirectError, ValueError):
    """Legacy destination pattern does not compile."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__(f"Invalid destination pattern {pattern!r}: {reason}")
