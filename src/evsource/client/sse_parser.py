"""SSE record parser.

Turns one raw event block (the text between two blank-line delimiters)
into a structured event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

log = structlog.get_logger()

_NEWLINE_RE = re.compile(r"\r\n|\r|\n")


@dataclass
class SSEEvent:
    """A single Server-Sent Event record."""

    id: str | None = None
    event: str | None = None
    data: str | None = None
    retry: int | None = None

    @property
    def is_retry_directive(self) -> bool:
        return self.retry is not None


def decode_block(raw: bytes) -> str:
    """Decode a raw block as UTF-8, replacing invalid sequences."""
    return raw.decode("utf-8", errors="replace")


def parse_retry(block: str) -> int | None:
    """Return the reconnection delay carried by a retry block, if valid."""
    value = block.rsplit(":", 1)[-1].strip()
    # ASCII digits only: int() would also take "-1", "5_000" and "٥"
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


def parse_field(line: str) -> tuple[str, str] | None:
    """Split a line at its first colon into (key, value).

    A line without a colon is a bare key with an empty value. Lines that
    are empty or start with a colon carry no field.
    """
    line = line.lstrip()
    if not line or line.startswith(":"):
        return None
    key, _, value = line.partition(":")
    return key, value.lstrip()


def parse_block(block: str) -> SSEEvent | None:
    """Parse one raw event block.

    Returns None for comments, empty blocks and unusable retry blocks.
    A block mentioning ``retry:`` anywhere is a retry directive and
    nothing else in it is dispatched.
    """
    if not block or block.startswith(":"):
        return None

    if "retry:" in block:
        retry = parse_retry(block)
        if retry is None:
            log.debug("retry_value_ignored", block=block[:64])
            return None
        return SSEEvent(retry=retry)

    fields: dict[str, str] = {}
    for line in _NEWLINE_RE.split(block):
        parsed = parse_field(line)
        if parsed is None:
            continue
        key, value = parsed
        if key in fields:
            fields[key] = f"{fields[key]}\n{value}"
        else:
            fields[key] = value

    return SSEEvent(
        id=fields.get("id"),
        event=fields.get("event"),
        data=fields.get("data"),
    )
