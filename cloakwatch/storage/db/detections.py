"""Hunting detection helpers."""

from __future__ import annotations

from typing import Optional

from .helpers import dump_json, load_json


class DetectionsMixin:
    """Detections keyed by (hunt_type, match_key) plus their status history."""

    async def find_detection(self, hunt_type: str, match_key: str) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute(
                "SELECT * FROM detections WHERE hunt_type = ? AND match_key = ?",
                (str(hunt_type), match_key),
            )
            row = await self._fetchone_dict(cursor)
        if row:
            row["redirect_path"] = load_json(row.get("redirect_path"), [])
            row["signals"] = load_json(row.get("signals"), {})
        return row

    async def insert_detection(
        self,
        hunt_type: str,
        initial_url: str,
        match_key: str,
        *,
        final_url: str,
        redirect_path: list[str],
        is_scam: bool,
        confidence_score: float,
        signals: Optional[dict] = None,
        ad_text: Optional[str] = None,
    ) -> int:
        async with self._guard():
            cursor = await self._connection.execute(
                """
                INSERT INTO detections (
                    hunt_type, initial_url, match_key, final_url, redirect_path,
                    is_scam, confidence_score, signals, ad_text
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(hunt_type),
                    initial_url,
                    match_key,
                    final_url,
                    dump_json(redirect_path),
                    int(bool(is_scam)),
                    confidence_score,
                    dump_json(signals),
                    ad_text,
                ),
            )
            return cursor.lastrowid

    async def update_detection_observation(
        self,
        detection_id: int,
        *,
        final_url: str,
        redirect_path: list[str],
        confidence_score: float,
        signals: Optional[dict] = None,
    ) -> None:
        async with self._guard():
            await self._connection.execute(
                """
                UPDATE detections
                SET last_seen = CURRENT_TIMESTAMP,
                    final_url = ?,
                    redirect_path = ?,
                    confidence_score = ?,
                    signals = COALESCE(?, signals)
                WHERE id = ?
                """,
                (final_url, dump_json(redirect_path), confidence_score, dump_json(signals), detection_id),
            )

    async def touch_detection(self, detection_id: int) -> None:
        async with self._guard():
            await self._connection.execute(
                "UPDATE detections SET last_seen = CURRENT_TIMESTAMP WHERE id = ?",
                (detection_id,),
            )

    async def set_detection_status(
        self,
        detection_id: int,
        *,
        previous_status: bool,
        new_status: bool,
        reason: str,
    ) -> None:
        """Flip is_scam and append the change to the history."""
        async with self._guard():
            await self._connection.execute(
                "UPDATE detections SET is_scam = ? WHERE id = ?",
                (int(bool(new_status)), detection_id),
            )
            await self._connection.execute(
                """
                INSERT INTO detection_status_history (detection_id, previous_status, new_status, reason)
                VALUES (?, ?, ?, ?)
                """,
                (detection_id, int(bool(previous_status)), int(bool(new_status)), reason),
            )

    async def get_detection_history(self, detection_id: int) -> list[dict]:
        async with self._guard():
            cursor = await self._connection.execute(
                """
                SELECT * FROM detection_status_history
                WHERE detection_id = ?
                ORDER BY id
                """,
                (detection_id,),
            )
            return await self._fetchall_dicts(cursor)

    async def count_detections(self, scam_only: bool = False) -> int:
        query = "SELECT COUNT(*) AS count FROM detections"
        if scam_only:
            query += " WHERE is_scam = 1"
        async with self._guard():
            cursor = await self._connection.execute(query)
            row = await cursor.fetchone()
            return int(row["count"] or 0)

    async def find_detection_by_initial_url(self, hunt_type: str, initial_url: str) -> Optional[dict]:
        async with self._guard():
            cursor = await self._connection.execute(
                """
                SELECT * FROM detections
                WHERE hunt_type = ? AND initial_url = ?
                ORDER BY last_seen DESC
                LIMIT 1
                """,
                (str(hunt_type), initial_url),
            )
            return await self._fetchone_dict(cursor)
