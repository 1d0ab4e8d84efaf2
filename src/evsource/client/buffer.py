"""Accumulation buffer that splits a raw byte stream into event blocks.

Blocks are separated by a blank line in any newline convention. The scan
always runs over the whole unresolved buffer, so a delimiter split across
two deliveries is still found once its second half arrives.
"""

from __future__ import annotations

from evsource.errors import BufferOverflow

# Longest first: at a shared start position the longer delimiter wins.
DELIMITERS: tuple[bytes, ...] = (b"\r\n\r\n", b"\n\n", b"\r\r")


def find_delimiter(buffer: bytes | bytearray, start: int) -> tuple[int, int] | None:
    """Return (position, length) of the earliest delimiter at or after start."""
    best: tuple[int, int] | None = None
    for delimiter in DELIMITERS:
        pos = buffer.find(delimiter, start)
        if pos == -1:
            continue
        if best is None or pos < best[0]:
            best = (pos, len(delimiter))
    return best


class StreamBuffer:
    """Incremental byte buffer yielding complete raw event blocks."""

    def __init__(self, max_bytes: int | None = None) -> None:
        self._buffer = bytearray()
        self._max_bytes = max_bytes

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append a chunk and return every block it completes, in order."""
        self._buffer.extend(chunk)
        blocks: list[bytes] = []

        cursor = 0
        while True:
            found = find_delimiter(self._buffer, cursor)
            if found is None:
                break
            pos, length = found
            if pos > cursor:
                blocks.append(bytes(self._buffer[cursor:pos]))
            cursor = pos + length

        # Drop everything resolved; keep the unterminated tail
        del self._buffer[:cursor]

        if self._max_bytes is not None and len(self._buffer) > self._max_bytes:
            size = len(self._buffer)
            self._buffer.clear()
            raise BufferOverflow(size, self._max_bytes)

        return blocks

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet attributable to a complete block."""
        return bytes(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)
