"""Database schema creation helpers."""

from __future__ import annotations


class DatabaseSchemaMixin:
    """Database schema creation helpers."""

    async def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        async with self._lock:
            await self._connection.executescript(
                """
                    CREATE TABLE IF NOT EXISTS sources (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        url TEXT UNIQUE NOT NULL,
                        host TEXT NOT NULL,
                        resolution_type TEXT NOT NULL,
                        regex_pattern TEXT,
                        origin TEXT DEFAULT 'manual',
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE TABLE IF NOT EXISTS destinations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        source_id INTEGER NOT NULL,
                        url TEXT NOT NULL,
                        match_key TEXT NOT NULL,
                        is_scam BOOLEAN NOT NULL DEFAULT 0,
                        confidence REAL,
                        signals TEXT,
                        redirect_path TEXT,
                        first_seen TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        last_seen TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (source_id, match_key),
                        FOREIGN KEY (source_id) REFERENCES sources(id) ON DELETE CASCADE
                    );

                    CREATE TABLE IF NOT EXISTS takedown_status (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        destination_id INTEGER UNIQUE NOT NULL,
                        safebrowsing_flagged_at TIMESTAMP,
                        netcraft_flagged_at TIMESTAMP,
                        smartscreen_flagged_at TIMESTAMP,
                        dns_unresolvable_at TIMESTAMP,
                        last_checked TIMESTAMP,
                        check_active BOOLEAN NOT NULL DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (destination_id) REFERENCES destinations(id) ON DELETE CASCADE
                    );

                    CREATE TABLE IF NOT EXISTS detections (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        hunt_type TEXT NOT NULL,
                        initial_url TEXT NOT NULL,
                        match_key TEXT NOT NULL,
                        final_url TEXT,
                        redirect_path TEXT,
                        is_scam BOOLEAN NOT NULL DEFAULT 0,
                        confidence_score REAL,
                        signals TEXT,
                        ad_text TEXT,
                        first_seen TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        last_seen TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (hunt_type, match_key)
                    );

                    CREATE TABLE IF NOT EXISTS detection_status_history (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        detection_id INTEGER NOT NULL,
                        previous_status BOOLEAN,
                        new_status BOOLEAN NOT NULL,
                        reason TEXT,
                        changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (detection_id) REFERENCES detections(id) ON DELETE CASCADE
                    );
                """
            )
            await self._create_indexes()

    async def _create_indexes(self) -> None:
        """Create indexes (best-effort)."""
        statements = [
            "CREATE INDEX IF NOT EXISTS idx_sources_host ON sources(host)",
            "CREATE INDEX IF NOT EXISTS idx_destinations_source ON destinations(source_id, last_seen)",
            "CREATE INDEX IF NOT EXISTS idx_takedown_active ON takedown_status(check_active, last_checked)",
            "CREATE INDEX IF NOT EXISTS idx_detections_scam ON detections(hunt_type, is_scam)",
        ]
        for stmt in statements:
            await self._connection.execute(stmt)
