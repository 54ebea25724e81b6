"""Destination dedup and history helpers."""

from __future__ import annotations

from typing import Optional

from .helpers import dump_json, load_json


class DestinationsMixin:
    """Destination rows keyed by (source_id, match_key)."""

    async def find_destination(self, source_id: int, match_key: str) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute(
                "SELECT * FROM destinations WHERE source_id = ? AND match_key = ?",
                (source_id, match_key),
            )
            row = await self._fetchone_dict(cursor)
        if row:
            row["signals"] = load_json(row.get("signals"), {})
            row["redirect_path"] = load_json(row.get("redirect_path"), [])
        return row

    async def insert_destination(
        self,
        source_id: int,
        url: str,
        match_key: str,
        *,
        is_scam: bool,
        confidence: Optional[float] = None,
        signals: Optional[dict] = None,
        redirect_path: Optional[list[str]] = None,
    ) -> int:
        async with self._guard():
            cursor = await self._connection.execute(
                """
                INSERT INTO destinations (source_id, url, match_key, is_scam, confidence, signals, redirect_path)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    source_id,
                    url,
                    match_key,
                    int(bool(is_scam)),
                    confidence,
                    dump_json(signals),
                    dump_json(redirect_path),
                ),
            )
            return cursor.lastrowid

    async def touch_destination(self, destination_id: int) -> None:
        async with self._guard():
            await self._connection.execute(
                "UPDATE destinations SET last_seen = CURRENT_TIMESTAMP WHERE id = ?",
                (destination_id,),
            )

    async def list_destinations(self, source_id: Optional[int] = None, limit: int = 50) -> list[dict]:
        async with self._guard():
            if source_id is None:
                cursor = await self._connection.execute(
                    "SELECT * FROM destinations ORDER BY last_seen DESC, id DESC LIMIT ?",
                    (limit,),
                )
            else:
                cursor = await self._connection.execute(
                    """
                    SELECT * FROM destinations
                    WHERE source_id = ?
                    ORDER BY last_seen DESC, id DESC
                    LIMIT ?
                    """,
                    (source_id, limit),
                )
            return await self._fetchall_dicts(cursor)

    async def count_destinations(self, scam_only: bool = False) -> int:
        query = "SELECT COUNT(*) AS count FROM destinations"
        if scam_only:
            query += " WHERE is_scam = 1"
        async with self._guard():
            cursor = await self._connection.execute(query)
            row = await cursor.fetchone()
            return int(row["count"] or 0)

    async def count_destinations_by_source(self) -> dict[int, int]:
        async with self._guard():
            cursor = await self._connection.execute(
                "SELECT source_id, COUNT(*) AS count FROM destinations GROUP BY source_id"
            )
            rows = await self._fetchall_dicts(cursor)
        return {int(row["source_id"]): int(row["count"]) for row in rows}
