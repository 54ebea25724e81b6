"""Fuse the screenshot classifier verdict with corroborating signals."""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.domains import allowlist_contains
from .signals import DetectedSignals, has_weighted_signal


@dataclass(frozen=True)
class ClassifierVerdict:
    is_scam: bool
    confidence: float


@dataclass(frozen=True)
class Decision:
    """Final verdict plus the inputs that produced it."""

    is_scam: bool
    confidence: float
    raw_is_scam: bool
    weighted_signal: bool
    allowlisted: bool
    reason: str


class ClassificationDecisionEngine:
    """
    The classifier alone over-triggers on benign pages, so a scam verdict
    also needs a weighted signal. Allowlisted hosts never count as scams.

    The threshold belongs to the caller: the single-URL path and the ad
    hunting path run with different values.
    """

    def __init__(self, threshold: float, allowlist: set[str] | None = None):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold
        self.allowlist = allowlist if allowlist is not None else set()

    def decide(
        self,
        final_url: str,
        verdict: ClassifierVerdict,
        signals: DetectedSignals,
    ) -> Decision:
        weighted = has_weighted_signal(signals)

        if allowlist_contains(final_url, self.allowlist):
            return Decision(
                is_scam=False,
                confidence=verdict.confidence,
                raw_is_scam=verdict.is_scam,
                weighted_signal=weighted,
                allowlisted=True,
                reason="allowlisted",
            )

        if not verdict.is_scam:
            reason = "classifier: benign"
        elif verdict.confidence < self.threshold:
            reason = f"confidence {verdict.confidence:.2f} below {self.threshold:.2f}"
        elif not weighted:
            reason = "no corroborating signal"
        else:
            reason = "scam: " + ", ".join(
                name for name in signals.active() if name != "page_load_frozen"
            )

        return Decision(
            is_scam=verdict.is_scam and verdict.confidence >= self.threshold and weighted,
            confidence=verdict.confidence,
            raw_is_scam=verdict.is_scam,
            weighted_signal=weighted,
            allowlisted=False,
            reason=reason,
        )
