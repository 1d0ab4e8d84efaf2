"""Exception types surfaced to error handlers."""

from __future__ import annotations


class EventSourceError(Exception):
    """Base class for errors reported by an EventSource."""


class TransportError(EventSourceError):
    """The underlying HTTP transport failed (connect, read, timeout).

    The library exception is chained as ``__cause__``.
    """


class BadStatus(EventSourceError):
    """The server answered with a status other than 200 or 204."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"Unexpected response status: {status}")


class BufferOverflow(EventSourceError):
    """The accumulation buffer grew past its configured limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"SSE buffer overflow: {size} bytes (limit {limit})")
