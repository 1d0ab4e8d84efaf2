"""Event dispatch: singleton handler slots plus a keyed listener registry.

Every user-facing notification is scheduled on the bound event loop with
``call_soon``, so handlers run in the order records were parsed and never
inside the parser's call stack.

Concurrency contract: the typed-listener registry is guarded by a lock and
may be mutated from any thread. The open/error/message slots and all
dispatch calls belong to the loop thread.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Callable

import structlog

from .sse_parser import SSEEvent

log = structlog.get_logger()

# (last_event_id, event_type, data)
EventHandler = Callable[[str | None, str, str], Any]
OpenHandler = Callable[[], Any]
ErrorHandler = Callable[[BaseException], Any]

MESSAGE_EVENT = "message"


class EventDispatcher:
    """Routes parsed records to the registered handlers."""

    def __init__(self, session_id: str = "", loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.session_id = session_id
        self._loop = loop

        # Singleton slots: last registration wins
        self._on_open: OpenHandler | None = None
        self._on_error: ErrorHandler | None = None
        self._on_message: EventHandler | None = None

        self._listeners: dict[str, EventHandler] = {}
        self._lock = threading.Lock()

        # Most recent error reported while no error handler was set
        self._pending_error: BaseException | None = None

        # Running coroutine handlers
        self._tasks: set[asyncio.Future[Any]] = set()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop handlers are scheduled on."""
        self._loop = loop

    # -- singleton slots --

    def set_open_handler(self, handler: OpenHandler | None) -> None:
        self._on_open = handler

    def set_message_handler(self, handler: EventHandler | None) -> None:
        self._on_message = handler

    def set_error_handler(self, handler: ErrorHandler | None) -> None:
        """Set the error handler, replaying a parked error once."""
        self._on_error = handler
        if handler is not None and self._pending_error is not None:
            error, self._pending_error = self._pending_error, None
            log.debug("error_replayed", session=self.session_id, error=str(error))
            self._invoke(handler, error)

    @property
    def pending_error(self) -> BaseException | None:
        return self._pending_error

    # -- typed listener registry --

    def add_listener(self, event_type: str, handler: EventHandler) -> None:
        with self._lock:
            self._listeners[event_type] = handler

    def remove_listener(self, event_type: str) -> None:
        with self._lock:
            self._listeners.pop(event_type, None)

    def get_listener(self, event_type: str) -> EventHandler | None:
        with self._lock:
            return self._listeners.get(event_type)

    def event_types(self) -> set[str]:
        with self._lock:
            return set(self._listeners)

    # -- dispatch --

    def notify_open(self) -> None:
        if self._on_open is not None:
            self._schedule(self._on_open)

    def dispatch(self, last_event_id: str | None, event: SSEEvent) -> bool:
        """Schedule the handler for one record. Returns True if one was found.

        Records with an event type only reach the listener registered for
        that exact type; they never fall back to the message handler.
        """
        if event.data is None:
            return False

        if event.event is None:
            if self._on_message is None:
                return False
            self._schedule(self._on_message, last_event_id, MESSAGE_EVENT, event.data)
            return True

        listener = self.get_listener(event.event)
        if listener is None:
            log.debug("event_dropped_no_listener", session=self.session_id, event_type=event.event)
            return False
        self._schedule(listener, last_event_id, event.event, event.data)
        return True

    def report_error(self, error: BaseException) -> None:
        """Deliver an error on the loop, or park it until a handler is set."""
        self._schedule(self._deliver_error, error)

    def _deliver_error(self, error: BaseException) -> None:
        if self._on_error is None:
            self._pending_error = error
            log.debug("error_parked", session=self.session_id, error=str(error))
            return
        self._invoke(self._on_error, error)

    def _schedule(self, handler: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is None:
            loop = asyncio.get_running_loop()
        loop.call_soon(self._invoke, handler, *args)

    def _invoke(self, handler: Callable[..., Any], *args: Any) -> None:
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                task.add_done_callback(self._log_task_failure)
        except Exception:
            log.exception("handler_error", session=self.session_id)

    def _log_task_failure(self, task: asyncio.Future[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("handler_error", session=self.session_id, error=repr(exc))
