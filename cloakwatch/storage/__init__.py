"""Storage modules for CloakWatch."""

from .database import Database, DatabaseTransaction
from .enums import HuntType, SourceOrigin, TakedownService
from .evidence import EvidenceStore

__all__ = [
    "Database",
    "DatabaseTransaction",
    "EvidenceStore",
    "HuntType",
    "SourceOrigin",
    "TakedownService",
]
