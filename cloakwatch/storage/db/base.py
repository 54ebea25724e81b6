"""Core database setup and transactions."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from .detections import DetectionsMixin
from .destinations import DestinationsMixin
from .helpers import DatabaseFetchMixin
from .schema import DatabaseSchemaMixin
from .sources import SourcesMixin
from .takedown import TakedownMixin

logger = logging.getLogger(__name__)


class DatabaseTransaction(
    SourcesMixin,
    DestinationsMixin,
    TakedownMixin,
    DetectionsMixin,
    DatabaseFetchMixin,
):
    """The same operations as Database, bound to one open transaction."""

    def __init__(self, connection: aiosqlite.Connection):
        self._connection = connection


class DatabaseBase(DatabaseSchemaMixin, DatabaseFetchMixin):
    """Shared connection, schema, and transaction handling."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    def _guard(self):
        return self._lock

    async def connect(self):
        """Establish database connection and create tables."""
        # Autocommit mode; multi-statement work goes through transaction().
        self._connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys=ON")
        # Best-effort because some SQLite builds/settings may reject these pragmas.
        try:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.execute("PRAGMA busy_timeout=5000")
        except sqlite3.DatabaseError as exc:
            logger.debug("Optional pragma rejected: %s", exc)
        await self._create_tables()

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DatabaseTransaction]:
        """
        Run a unit of work atomically.

        Commits when the block exits normally; any exception rolls back every
        statement issued through the yielded transaction and is re-raised.
        """
        async with self._lock:
            await self._connection.execute("BEGIN IMMEDIATE")
            try:
                yield DatabaseTransaction(self._connection)
            except BaseException:
                await self._connection.execute("ROLLBACK")
                raise
            else:
                await self._connection.execute("COMMIT")
