"""SQLite-backed last-event-id store via aiosqlite."""

from __future__ import annotations

import os
import time

import aiosqlite
import structlog

from .models import SCHEMA_SQL, LastEventIdRow

log = structlog.get_logger()


class SqliteStore:
    """Durable last-event-id store; survives process restarts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection and initialize schema."""
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        log.info("store_connected", path=self._db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Store not connected")
        return self._conn

    async def get(self, key: str) -> str | None:
        row = await self.get_row(key)
        return row.event_id if row else None

    async def set(self, key: str, value: str) -> None:
        await self.conn.execute(
            """
            INSERT INTO last_event_ids (session_key, event_id, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(session_key) DO UPDATE SET
                event_id = excluded.event_id,
                updated_at = excluded.updated_at
            """,
            (key, value, time.time()),
        )
        await self.conn.commit()

    async def get_row(self, key: str) -> LastEventIdRow | None:
        cursor = await self.conn.execute(
            "SELECT session_key, event_id, updated_at FROM last_event_ids WHERE session_key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return LastEventIdRow(*row)
