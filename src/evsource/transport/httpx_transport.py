"""httpx-based streaming transport (default)."""

from __future__ import annotations

from typing import Mapping

import httpx
import structlog

from evsource.client.reconnect import TransportResult
from evsource.errors import BadStatus, TransportError

from .base import NO_CONTENT, OK, ChunkCallback

log = structlog.get_logger()


class HttpxTransport:
    """Streams a GET response body through an httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self._owns_client = client is None
        if client is None:
            # No read timeout: the stream is expected to idle between events
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(None, connect=connect_timeout),
                follow_redirects=True,
            )
        self._client = client

    async def stream(
        self,
        url: str,
        headers: Mapping[str, str],
        on_chunk: ChunkCallback,
    ) -> TransportResult:
        status: int | None = None
        try:
            async with self._client.stream("GET", url, headers=dict(headers)) as response:
                status = response.status_code
                log.debug("transport_response", url=url, status=status)
                if status == NO_CONTENT:
                    return TransportResult(status=status)
                if status != OK:
                    return TransportResult(error=BadStatus(status), status=status)
                async for chunk in response.aiter_bytes():
                    await on_chunk(chunk)
        except httpx.HTTPError as exc:
            log.warning("transport_error", url=url, error=str(exc))
            error = TransportError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
            return TransportResult(error=error, status=status)
        return TransportResult(status=status)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
