"""aiohttp-based streaming transport."""

from __future__ import annotations

import asyncio
from typing import Mapping

import aiohttp
import structlog

from evsource.client.reconnect import TransportResult
from evsource.errors import BadStatus, TransportError

from .base import NO_CONTENT, OK, ChunkCallback

log = structlog.get_logger()


class AiohttpTransport:
    """Streams a GET response body through an aiohttp.ClientSession."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._connect_timeout = connect_timeout

    def _get_session(self) -> aiohttp.ClientSession:
        # Sessions must be created inside a running loop
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout),
            )
        return self._session

    async def stream(
        self,
        url: str,
        headers: Mapping[str, str],
        on_chunk: ChunkCallback,
    ) -> TransportResult:
        status: int | None = None
        try:
            async with self._get_session().get(url, headers=dict(headers)) as response:
                status = response.status
                log.debug("transport_response", url=url, status=status)
                if status == NO_CONTENT:
                    return TransportResult(status=status)
                if status != OK:
                    return TransportResult(error=BadStatus(status), status=status)
                async for chunk in response.content.iter_any():
                    await on_chunk(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.warning("transport_error", url=url, error=str(exc))
            error = TransportError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
            return TransportResult(error=error, status=status)
        return TransportResult(status=status)

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
