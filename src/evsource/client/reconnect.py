"""Reconnection policy after a stream attempt ends."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

import structlog

log = structlog.get_logger()

DEFAULT_RETRY_MS = 3000

# Server signal to stop reconnecting
NO_CONTENT = 204


@dataclass
class TransportResult:
    """Terminal outcome of one transport attempt."""

    error: BaseException | None = None
    status: int | None = None
    cancelled: bool = False


class ReconnectController:
    """Decides whether to reconnect and owns the pending retry timer."""

    def __init__(self, retry_ms: int = DEFAULT_RETRY_MS, session_id: str = "") -> None:
        self.retry_ms = retry_ms
        self.session_id = session_id
        self.attempts = 0
        self._timer: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.cancelled()

    def update_retry(self, retry_ms: int) -> None:
        """Apply a server-sent retry interval."""
        log.debug("retry_interval_updated", session=self.session_id, retry_ms=retry_ms)
        self.retry_ms = retry_ms

    def should_reconnect(self, result: TransportResult, closed_by_caller: bool = False) -> bool:
        if result.status == NO_CONTENT:
            log.info("stream_ended_by_server", session=self.session_id, status=result.status)
            return False
        if result.cancelled or closed_by_caller:
            return False
        return True

    def schedule(self, loop: asyncio.AbstractEventLoop, callback: Callable[[], None]) -> None:
        """Run callback after the current retry interval."""
        self.cancel()
        self.attempts += 1
        log.info(
            "reconnect_scheduled",
            session=self.session_id,
            retry_ms=self.retry_ms,
            attempt=self.attempts,
        )
        self._timer = loop.call_later(self.retry_ms / 1000, self._fire, callback)

    def _fire(self, callback: Callable[[], None]) -> None:
        self._timer = None
        callback()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def reset(self) -> None:
        """Forget the attempt count after a successful open."""
        self.attempts = 0
