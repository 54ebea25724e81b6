"""SQLite database for CloakWatch."""

from __future__ import annotations

from .db.base import DatabaseBase, DatabaseTransaction
from .db.detections import DetectionsMixin
from .db.destinations import DestinationsMixin
from .db.sources import SourcesMixin
from .db.takedown import TakedownMixin


class Database(
    DatabaseBase,
    SourcesMixin,
    DestinationsMixin,
    TakedownMixin,
    DetectionsMixin,
):
    """Async SQLite database; each call locks the shared connection for its duration."""


__all__ = ["Database", "DatabaseTransaction"]
