"""Page inspection, signal detection and verdict fusion."""

from .browser import BrowserManager, BrowserUnavailableError
from .classifier import ClassifierError, ScreenshotClassifier
from .decision import ClassificationDecisionEngine, ClassifierVerdict, Decision
from .inspector import Inspection, PageInspector
from .signals import DetectedSignals, SignalDetector, has_weighted_signal
from .takedown_checker import DnsStatus, TakedownChecker
from .url_classifier import Classification, UrlClassifier

__all__ = [
    "BrowserManager",
    "BrowserUnavailableError",
    "Classification",
    "ClassificationDecisionEngine",
    "ClassifierError",
    "ClassifierVerdict",
    "Decision",
    "DetectedSignals",
    "DnsStatus",
    "Inspection",
    "PageInspector",
    "ScreenshotClassifier",
    "SignalDetector",
    "TakedownChecker",
    "UrlClassifier",
    "has_weighted_signal",
]
