"""Takedown status helpers."""

from __future__ import annotations

from typing import Optional

from ..enums import TakedownService


class TakedownMixin:
    """
    Per-destination takedown flags.

    Every *_flagged_at column is write-once, and nothing is written once
    dns_unresolvable_at is set.
    """

    async def create_takedown_status(self, destination_id: int) -> int:
        """Create the status row for a scam destination (idempotent)."""
        async with self._guard():
            await self._connection.execute(
                """
                INSERT OR IGNORE INTO takedown_status (destination_id, check_active)
                VALUES (?, 1)
                """,
                (destination_id,),
            )
            cursor = await self._connection.execute(
                "SELECT id FROM takedown_status WHERE destination_id = ?",
                (destination_id,),
            )
            row = await cursor.fetchone()
            return int(row["id"])

    async def get_takedown_status(self, destination_id: int) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute(
                "SELECT * FROM takedown_status WHERE destination_id = ?",
                (destination_id,),
            )
            return await self._fetchone_dict(cursor)

    async def get_takedown_status_by_id(self, status_id: int) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute(
                "SELECT * FROM takedown_status WHERE id = ?",
                (status_id,),
            )
            return await self._fetchone_dict(cursor)

    async def get_due_takedown_checks(self, recheck_seconds: int) -> list[dict]:
        """Active rows never checked, or last checked before the recheck window."""
        async with self._guard():
            cursor = await self._connection.execute(
                """
                SELECT t.*, d.url AS destination_url, d.source_id
                FROM takedown_status t
                JOIN destinations d ON d.id = t.destination_id
                WHERE t.check_active = 1
                AND t.dns_unresolvable_at IS NULL
                AND (t.last_checked IS NULL OR t.last_checked <= datetime('now', ?))
                ORDER BY t.last_checked IS NOT NULL, t.last_checked, t.id
                """,
                (f"-{int(recheck_seconds)} seconds",),
            )
            return await self._fetchall_dicts(cursor)

    async def mark_service_flagged(self, status_id: int, service: TakedownService | str) -> bool:
        """Set <service>_flagged_at once. Returns True only on the first write."""
        column = TakedownService(service).column
        async with self._guard():
            cursor = await self._connection.execute(
                f"""
                UPDATE takedown_status
                SET {column} = COALESCE({column}, CURRENT_TIMESTAMP)
                WHERE id = ?
                AND {column} IS NULL
                AND dns_unresolvable_at IS NULL
                """,
                (status_id,),
            )
            return cursor.rowcount > 0

    async def mark_dns_unresolvable(self, status_id: int) -> bool:
        """Terminal: record NXDOMAIN and stop all further checks."""
        async with self._guard():
            cursor = await self._connection.execute(
                """
                UPDATE takedown_status
                SET dns_unresolvable_at = COALESCE(dns_unresolvable_at, CURRENT_TIMESTAMP),
                    check_active = 0
                WHERE id = ?
                AND dns_unresolvable_at IS NULL
                """,
                (status_id,),
            )
            return cursor.rowcount > 0

    async def touch_last_checked(self, status_id: int) -> None:
        async with self._guard():
            await self._connection.execute(
                "UPDATE takedown_status SET last_checked = CURRENT_TIMESTAMP WHERE id = ?",
                (status_id,),
            )

    async def get_takedown_summary(self) -> dict:
        async with self._guard():
            cursor = await self._connection.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN check_active = 1 THEN 1 ELSE 0 END) AS active,
                    COUNT(safebrowsing_flagged_at) AS safebrowsing,
                    COUNT(netcraft_flagged_at) AS netcraft,
                    COUNT(smartscreen_flagged_at) AS smartscreen,
                    COUNT(dns_unresolvable_at) AS dns_unresolvable
                FROM takedown_status
                """
            )
            row = await self._fetchone_dict(cursor) or {}
        return {key: int(value or 0) for key, value in row.items()}

    async def get_recent_takedowns(self, limit: int = 10) -> list[dict]:
        """Destinations with at least one flag, newest activity first."""
        async with self._guard():
            cursor = await self._connection.execute(
                """
                SELECT t.*, d.url AS destination_url, d.first_seen AS first_seen
                FROM takedown_status t
                JOIN destinations d ON d.id = t.destination_id
                WHERE t.safebrowsing_flagged_at IS NOT NULL
                OR t.netcraft_flagged_at IS NOT NULL
                OR t.smartscreen_flagged_at IS NOT NULL
                OR t.dns_unresolvable_at IS NOT NULL
                ORDER BY MAX(
                    COALESCE(t.safebrowsing_flagged_at, ''),
                    COALESCE(t.netcraft_flagged_at, ''),
                    COALESCE(t.smartscreen_flagged_at, ''),
                    COALESCE(t.dns_unresolvable_at, '')
                ) DESC
                LIMIT ?
                """,
                (limit,),
            )
            return await self._fetchall_dicts(cursor)
