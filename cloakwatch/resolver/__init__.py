"""Redirect resolution and source enrolment."""

from .enrollment import SourceEnroller, cloaker_candidate
from .errors import InvalidPatternError, RedirectError, UnsupportedRedirectTypeError
from .resolver import RedirectResolver, compile_pattern
from .types import ENROLLMENT_ORDER, RedirectType

__all__ = [
    "ENROLLMENT_ORDER",
    "InvalidPatternError",
    "RedirectError",
    "RedirectResolver",
    "RedirectType",
    "SourceEnroller",
    "UnsupportedRedirectTypeError",
    "cloaker_candidate",
    "compile_pattern",
]
