"""Server - per-connection command dispatch.

The server layer decodes one command per connection, hands it to a
registered handler and encodes the result.

This layer knows about core, but not about:
- Listening sockets (see wgdynamic.transport)
- Frontends (CLI)

Classes:
    Dispatcher: Serves one command per accepted connection.
    StaticPool: In-memory request_ip handler.
    RequestIPHandler: Protocol for request_ip handlers.

Example:
    >>> from wgdynamic.server import Dispatcher
    >>> from wgdynamic.core import COMMAND_REQUEST_IP, RequestIP
    >>>
    >>> async def assign(peer, request: RequestIP) -> RequestIP:
    ...     return RequestIP(ipv4=ip_interface("192.0.2.1/32"))
    >>>
    >>> dispatcher = Dispatcher({COMMAND_REQUEST_IP: assign})
"""

from wgdynamic.server.dispatcher import Dispatcher
from wgdynamic.server.pool import StaticPool
from wgdynamic.server.protocols import INTERNAL_ERROR, Handler, PeerAddress, RequestIPHandler

__all__ = [
    "Dispatcher",
    "StaticPool",
    "Handler",
    "RequestIPHandler",
    "PeerAddress",
    "INTERNAL_ERROR",
]
