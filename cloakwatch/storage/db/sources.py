"""Monitored source helpers."""

from __future__ import annotations

from typing import Optional

import aiosqlite

from ...utils.domains import canonicalize_host


class SourcesMixin:
    """Source registration, lookup and pruning queries."""

    async def add_source(
        self,
        url: str,
        resolution_type: str,
        regex_pattern: Optional[str] = None,
        origin: str = "manual",
    ) -> Optional[int]:
        """Register a source. Returns its ID or None if the URL already exists."""
        async with self._guard():
            try:
                cursor = await self._connection.execute(
                    """
                    INSERT INTO sources (url, host, resolution_type, regex_pattern, origin)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (url, canonicalize_host(url), str(resolution_type), regex_pattern, str(origin)),
                )
                return cursor.lastrowid
            except aiosqlite.IntegrityError:
                return None

    async def get_source(self, url: str) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute("SELECT * FROM sources WHERE url = ?", (url,))
            return await self._fetchone_dict(cursor)

    async def get_source_by_id(self, source_id: int) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute("SELECT * FROM sources WHERE id = ?", (source_id,))
            return await self._fetchone_dict(cursor)

    async def source_host_exists(self, url_or_host: str) -> bool:
        """True when any source shares the host (scheme and path ignored)."""
        host = canonicalize_host(url_or_host)
        if not host:
            return False
        async with self._guard():
            cursor = await self._connection.execute(
                "SELECT 1 FROM sources WHERE host = ? LIMIT 1", (host,)
            )
            return await cursor.fetchone() is not None

    async def list_sources(self) -> list[dict]:
        async with self._guard():
            cursor = await self._connection.execute("SELECT * FROM sources ORDER BY id")
            return await self._fetchall_dicts(cursor)

    async def remove_source(self, url: str) -> bool:
        """Delete a source; destinations and takedown rows cascade."""
        async with self._guard():
            cursor = await self._connection.execute("DELETE FROM sources WHERE url = ?", (url,))
            return cursor.rowcount > 0

    async def remove_source_by_id(self, source_id: int) -> bool:
        async with self._guard():
            cursor = await self._connection.execute("DELETE FROM sources WHERE id = ?", (source_id,))
            return cursor.rowcount > 0

    async def get_inactive_sources(self, inactive_days: int) -> list[dict]:
        """Sources older than the window with no scam destination seen inside it."""
        window = f"-{int(inactive_days)} days"
        async with self._guard():
            cursor = await self._connection.execute(
                """
                SELECT s.*
                FROM sources s
                WHERE s.created_at <= datetime('now', ?)
                AND NOT EXISTS (
                    SELECT 1 FROM destinations d
                    WHERE d.source_id = s.id
                    AND d.is_scam = 1
                    AND d.last_seen > datetime('now', ?)
                )
                ORDER BY s.id
                """,
                (window, window),
            )
            return await self._fetchall_dicts(cursor)
