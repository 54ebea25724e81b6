"""Reporter modules for CloakWatch threat reporting."""

from .base import (
    BaseHTTPReporter,
    BaseReporter,
    ReportResult,
    ReportStatus,
    ReporterError,
    RateLimitError,
    APIError,
)
from .batch_queue import BatchReportQueue
from .manager import ReportManager

# Platform reporters
from .crdf import CrdfLabsReporter
from .netcraft import NetcraftReporter
from .safebrowsing import SafeBrowsingReporter
from .urlscan import UrlscanReporter

__all__ = [
    # Base classes
    "BaseHTTPReporter",
    "BaseReporter",
    "ReportResult",
    "ReportStatus",
    "ReporterError",
    "RateLimitError",
    "APIError",
    # Queue and manager
    "BatchReportQueue",
    "ReportManager",
    # Reporters
    "CrdfLabsReporter",
    "NetcraftReporter",
    "SafeBrowsingReporter",
    "UrlscanReporter",
]
