"""Allowlist file helpers."""

from __future__ import annotations

from pathlib import Path

from .domains import normalize_allowlist_entry


def read_allowlist(path: Path) -> set[str]:
    """Read allowlist entries from disk, normalized to canonical hosts."""
    if not path.exists():
        return set()

    entries: set[str] = set()
    for line in path.read_text().splitlines():
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        normalized = normalize_allowlist_entry(value)
        if normalized:
            entries.add(normalized)
    return entries
