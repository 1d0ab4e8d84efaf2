"""Persistence collaborator for last-event-id values."""

from __future__ import annotations

from typing import Protocol
from urllib.parse import urlparse

KEY_NAMESPACE = "evsource.last_event_id"


def session_identifier(url: str) -> str:
    """Stable identifier for a stream: scheme.host.port.path."""
    parsed = urlparse(url)
    port = str(parsed.port) if parsed.port is not None else ""
    return f"{parsed.scheme}.{parsed.hostname or ''}.{port}.{parsed.path}"


def store_key(session_id: str) -> str:
    return f"{KEY_NAMESPACE}.{session_id}"


class LastEventIdStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Process-local store; values are lost on exit."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def __len__(self) -> int:
        return len(self._values)
