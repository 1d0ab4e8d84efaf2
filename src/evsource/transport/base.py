"""Transport collaborator interface.

A transport performs one streaming GET, hands every raw chunk to
``on_chunk`` as it arrives and reports how the attempt ended. The handle
for an attempt is the asyncio task awaiting ``stream()``; cancelling that
task cancels the request.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping, Protocol

from evsource.client.reconnect import NO_CONTENT, TransportResult

ChunkCallback = Callable[[bytes], Awaitable[None]]

OK = 200


class Transport(Protocol):
    async def stream(
        self,
        url: str,
        headers: Mapping[str, str],
        on_chunk: ChunkCallback,
    ) -> TransportResult: ...

    async def aclose(self) -> None: ...
