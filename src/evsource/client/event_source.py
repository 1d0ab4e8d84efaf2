"""EventSource: one logical SSE session with automatic reconnection.

Owns the ready-state machine, the accumulation buffer and the retry timer,
and wires a transport, a last-event-id store and the dispatcher together.
All methods except the listener registry ones must be called on the event
loop thread; from elsewhere use ``loop.call_soon_threadsafe(source.close)``.
"""

from __future__ import annotations

import asyncio
from typing import Mapping

import structlog

from evsource.auth import basic_auth
from evsource.errors import EventSourceError, TransportError
from evsource.store.base import LastEventIdStore, MemoryStore, session_identifier, store_key
from evsource.transport.base import Transport

from .buffer import StreamBuffer
from .dispatcher import ErrorHandler, EventDispatcher, EventHandler, OpenHandler
from .reconnect import DEFAULT_RETRY_MS, ReconnectController, TransportResult
from .sse_parser import SSEEvent, decode_block, parse_block
from .state_machine import ReadyState, transition

log = structlog.get_logger()


class EventSource:
    """Server-Sent Events client for a single URL."""

    basic_auth = staticmethod(basic_auth)

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        *,
        transport: Transport | None = None,
        store: LastEventIdStore | None = None,
        retry_ms: int = DEFAULT_RETRY_MS,
        max_buffer_bytes: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.url = url
        self.headers: dict[str, str] = dict(headers or {})
        self.session_id = session_identifier(url)
        self._store_key = store_key(self.session_id)

        if transport is None:
            from evsource.transport.httpx_transport import HttpxTransport
            transport = HttpxTransport()
        self._transport = transport
        self._store: LastEventIdStore = store if store is not None else MemoryStore()
        self._loop = loop

        self._state = ReadyState.CONNECTING
        self._buffer = StreamBuffer(max_bytes=max_buffer_bytes)
        self._dispatcher = EventDispatcher(self.session_id, loop)
        self._reconnect = ReconnectController(retry_ms, self.session_id)

        self._task: asyncio.Task[None] | None = None
        self._closed_by_caller = False
        self._last_event_id: str | None = None

    # -- read-only state --

    @property
    def ready_state(self) -> ReadyState:
        return self._state

    @property
    def retry_time(self) -> int:
        """Current reconnection delay in milliseconds."""
        return self._reconnect.retry_ms

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect.pending

    # -- handler registration --

    def on_open(self, handler: OpenHandler | None) -> None:
        self._dispatcher.set_open_handler(handler)

    def on_error(self, handler: ErrorHandler | None) -> None:
        self._dispatcher.set_error_handler(handler)

    def on_message(self, handler: EventHandler | None) -> None:
        self._dispatcher.set_message_handler(handler)

    def add_event_listener(self, event_type: str, handler: EventHandler) -> None:
        self._dispatcher.add_listener(event_type, handler)

    def remove_event_listener(self, event_type: str) -> None:
        self._dispatcher.remove_listener(event_type)

    def events(self) -> set[str]:
        """Event types with a registered listener."""
        return self._dispatcher.event_types()

    # -- lifecycle --

    def connect(self) -> None:
        """Start a new streaming attempt unless one is already live."""
        if self._task is not None and not self._task.done():
            log.debug("connect_skipped_attempt_live", session=self.session_id)
            return

        if self._loop is None:
            self._loop = asyncio.get_running_loop()
            self._dispatcher.bind(self._loop)

        self._closed_by_caller = False
        self._reconnect.cancel()
        self._state = transition(self._state, ReadyState.CONNECTING, self.session_id, trigger="connect")
        self._buffer.clear()
        self._task = self._loop.create_task(self._run_attempt())

    def close(self) -> None:
        """Stop the stream and any scheduled reconnection. Idempotent."""
        self._closed_by_caller = True
        self._reconnect.cancel()
        if self._state is ReadyState.CLOSED:
            return
        self._state = transition(self._state, ReadyState.CLOSED, self.session_id, trigger="close")
        if self._task is not None and not self._task.done():
            self._task.cancel()
        log.info("event_source_closed", session=self.session_id)

    async def wait_closed(self) -> None:
        """Wait for the live attempt, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def aclose(self) -> None:
        """Close and release the transport."""
        self.close()
        await self.wait_closed()
        await self._transport.aclose()

    # -- attempt --

    async def _build_headers(self) -> dict[str, str]:
        headers = dict(self.headers)
        stored = await self._store.get(self._store_key)
        if stored is not None:
            self._last_event_id = stored
        if self._last_event_id is not None:
            headers["Last-Event-Id"] = self._last_event_id
        headers["Accept"] = "text/event-stream"
        headers["Cache-Control"] = "no-cache"
        return headers

    async def _run_attempt(self) -> None:
        result = TransportResult()
        try:
            headers = await self._build_headers()
            log.info(
                "connecting",
                session=self.session_id,
                url=self.url,
                last_event_id=headers.get("Last-Event-Id"),
            )
            result = await self._transport.stream(self.url, headers, self._on_chunk)
        except asyncio.CancelledError:
            result = TransportResult(cancelled=True)
            raise
        except EventSourceError as exc:
            log.warning("stream_error", session=self.session_id, error=str(exc))
            result = TransportResult(error=exc)
        except Exception as exc:
            log.exception("stream_error", session=self.session_id)
            error = TransportError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
            result = TransportResult(error=error)
        finally:
            self._on_attempt_finished(result)

    async def _on_chunk(self, chunk: bytes) -> None:
        if self._state is ReadyState.CONNECTING:
            self._state = transition(self._state, ReadyState.OPEN, self.session_id, trigger="first_chunk")
            self._reconnect.reset()
            log.info("stream_open", session=self.session_id)
            self._dispatcher.notify_open()

        if self._state is not ReadyState.OPEN:
            return

        for raw in self._buffer.feed(chunk):
            event = parse_block(decode_block(raw))
            if event is None:
                continue
            await self._handle_event(event)

    async def _handle_event(self, event: SSEEvent) -> None:
        if event.is_retry_directive:
            self._reconnect.update_retry(event.retry)
            return

        if event.id is not None:
            self._last_event_id = event.id
            await self._store.set(self._store_key, event.id)

        self._dispatcher.dispatch(self._last_event_id, event)

    def _on_attempt_finished(self, result: TransportResult) -> None:
        if self._state is not ReadyState.CLOSED:
            self._state = transition(self._state, ReadyState.CLOSED, self.session_id, trigger="stream_end")

        log.info(
            "stream_closed",
            session=self.session_id,
            status=result.status,
            cancelled=result.cancelled,
            error=str(result.error) if result.error else None,
        )

        if not self._reconnect.should_reconnect(result, self._closed_by_caller):
            return

        assert self._loop is not None
        self._reconnect.schedule(self._loop, self.connect)

        if result.error is not None:
            self._dispatcher.report_error(result.error)
