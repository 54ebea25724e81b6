"""Database row conversion helpers."""

from __future__ import annotations

import json
from contextlib import nullcontext
from typing import Optional


class DatabaseFetchMixin:
    """Row conversion helpers."""

    def _guard(self):
        # Transactions already hold the connection lock.
        return nullcontext()

    async def _fetchone_dict(self, cursor) -> Optional[dict]:
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def _fetchall_dicts(self, cursor) -> list[dict]:
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]


def dump_json(value) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"))


def load_json(value, default=None):
    if not value:
        return default
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default
