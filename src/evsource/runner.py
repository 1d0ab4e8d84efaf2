"""Build an EventSource from configuration and run it from the command line."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Mapping

import structlog

from evsource.client.event_source import EventSource
from evsource.config import ClientConfig
from evsource.store.base import LastEventIdStore, MemoryStore
from evsource.store.db import SqliteStore
from evsource.transport.base import Transport

log = structlog.get_logger()


def create_transport(config: ClientConfig) -> Transport:
    """Instantiate the transport named by config.transport."""
    if config.transport == "aiohttp":
        from evsource.transport.aiohttp_transport import AiohttpTransport
        return AiohttpTransport(connect_timeout=config.connect_timeout)

    from evsource.transport.httpx_transport import HttpxTransport
    return HttpxTransport(connect_timeout=config.connect_timeout)


async def create_store(config: ClientConfig) -> LastEventIdStore:
    """Open the last-event-id store: SQLite when store_path is set, else memory."""
    if config.durable_store:
        store = SqliteStore(config.store_path)
        await store.connect()
        return store
    return MemoryStore()


async def create_event_source(
    url: str,
    config: ClientConfig | None = None,
    headers: Mapping[str, str] | None = None,
    transport: Transport | None = None,
    store: LastEventIdStore | None = None,
) -> EventSource:
    """Create an EventSource wired from configuration.

    Args:
        url: Stream URL.
        config: Client configuration. Defaults to ClientConfig().
        headers: Extra request headers sent on every attempt.
        transport: Optional pre-built transport (for testing).
        store: Optional pre-built last-event-id store (for testing).
    """
    if config is None:
        config = ClientConfig()

    return EventSource(
        url,
        headers,
        transport=transport if transport is not None else create_transport(config),
        store=store if store is not None else await create_store(config),
        retry_ms=config.retry_ms,
        max_buffer_bytes=config.max_buffer_bytes,
    )


def format_event(last_event_id: str | None, event_type: str, data: str) -> str:
    """Render one delivered event as a JSON line."""
    return json.dumps({"id": last_event_id, "event": event_type, "data": data})


async def stream_events(
    url: str,
    config: ClientConfig,
    headers: Mapping[str, str] | None = None,
    event_types: list[str] | None = None,
    stop: asyncio.Event | None = None,
    out: Any = None,
) -> None:
    """Print events from url as JSON lines until stop is set."""
    if out is None:
        out = sys.stdout
    if stop is None:
        stop = asyncio.Event()

    store = await create_store(config)
    source = await create_event_source(url, config, headers, store=store)

    def on_event(last_event_id: str | None, event_type: str, data: str) -> None:
        out.write(format_event(last_event_id, event_type, data) + "\n")
        out.flush()

    def on_error(error: BaseException) -> None:
        log.warning("stream_error_reported", url=url, error=str(error))

    source.on_open(lambda: log.info("stream_opened", url=url))
    source.on_error(on_error)
    source.on_message(on_event)
    for event_type in event_types or []:
        source.add_event_listener(event_type, on_event)

    source.connect()
    try:
        await stop.wait()
    finally:
        await source.aclose()
        if isinstance(store, SqliteStore):
            await store.close()


def run_client(
    url: str,
    config: ClientConfig | None = None,
    headers: Mapping[str, str] | None = None,
    event_types: list[str] | None = None,
) -> None:
    """Run the client until interrupted (blocking)."""
    if config is None:
        config = ClientConfig()

    try:
        asyncio.run(stream_events(url, config, headers, event_types))
    except KeyboardInterrupt:
        log.info("client_interrupted", url=url)
