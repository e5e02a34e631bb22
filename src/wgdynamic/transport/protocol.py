"""Transport protocol definitions.

Defines the interfaces that client and server transports implement, so
frontends can be written against them and tested with fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from wgdynamic.core.cancellation import CancellationToken
    from wgdynamic.core.types import RequestIP


class ClientTransport(Protocol):
    """Client-side transport protocol.

    Used by frontends to request addresses from a server.
    """

    async def request_ip(
        self,
        request: RequestIP | None = None,
        *,
        cancellation: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> RequestIP:
        """Perform one request_ip exchange."""
        ...


class ServerTransport(Protocol):
    """Server-side transport protocol.

    Used to accept connections and feed them to a dispatcher.
    """

    async def serve_forever(self) -> None:
        """Start serving. Blocks until stopped."""
        ...

    async def stop(self) -> None:
        """Stop serving."""
        ...
