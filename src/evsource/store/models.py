"""Last-event-id table definition and row type."""

from __future__ import annotations

from dataclasses import dataclass

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS last_event_ids (
    session_key TEXT PRIMARY KEY,
    event_id TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""


@dataclass
class LastEventIdRow:
    session_key: str
    event_id: str
    updated_at: float
