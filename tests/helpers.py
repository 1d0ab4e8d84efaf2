"""Shared fakes for EventSource tests."""

from __future__ import annotations

import asyncio
from typing import Callable, Mapping

from evsource.client.reconnect import TransportResult
from evsource.client.sse_parser import SSEEvent

# (chunks delivered in order, terminal result or None to stay open)
Attempt = tuple[list[bytes], TransportResult | None]


class ScriptedTransport:
    """Plays back scripted attempts; stays open once the script runs out."""

    def __init__(self, attempts: list[Attempt] | None = None) -> None:
        self.attempts = list(attempts or [])
        self.requests: list[dict[str, str]] = []
        self.closed = False

    async def stream(self, url: str, headers: Mapping[str, str], on_chunk) -> TransportResult:
        self.requests.append(dict(headers))
        if not self.attempts:
            await asyncio.Event().wait()
        chunks, result = self.attempts.pop(0)
        for chunk in chunks:
            await on_chunk(chunk)
        if result is None:
            await asyncio.Event().wait()
        return result

    async def aclose(self) -> None:
        self.closed = True


class Recorder:
    """Collects (last_event_id, event_type, data) calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str | None, str, str]] = []

    def __call__(self, last_event_id: str | None, event_type: str, data: str) -> None:
        self.calls.append((last_event_id, event_type, data))


async def settle(rounds: int = 5) -> None:
    """Let already-scheduled loop callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


def to_wire(event: SSEEvent) -> bytes:
    """Serialize an event to SSE wire format, blank line included."""
    lines: list[str] = []
    if event.id is not None:
        lines.append(f"id: {event.id}")
    if event.event is not None:
        lines.append(f"event: {event.event}")
    if event.data is not None:
        for data_line in event.data.split("\n"):
            lines.append(f"data: {data_line}")
    if event.retry is not None:
        lines.append(f"retry: {event.retry}")
    lines.append("")
    return ("\n".join(lines) + "\n").encode()
