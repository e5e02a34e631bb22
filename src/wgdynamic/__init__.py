"""wgdynamic - Dynamic IP address leases for WireGuard peers.

wgdynamic implements the wg-dynamic key=value protocol: a client on a
WireGuard interface asks the server on the other end of the link for IPv4
and/or IPv6 addresses, and the server answers with a time-bounded lease.

Layers:
    core/       Protocol codec, types, errors, cancellation, discovery
    server/     Per-connection command dispatch and handlers
    transport/  TCP client and listener
    frontends/  Command-line interface

Quick Start (client):
    >>> from wgdynamic import Client
    >>>
    >>> client = Client.for_interface("wg0")
    >>> lease = await client.request_ip(timeout=5.0)
    >>> print(lease.ipv4, lease.ipv6, lease.lease_time)

Quick Start (server):
    >>> from wgdynamic import COMMAND_REQUEST_IP, Dispatcher, TCPSocketServer
    >>>
    >>> async def assign(peer, request):
    ...     return RequestIP(ipv4=ip_interface("192.0.2.1/32"), lease_time=timedelta(hours=1))
    >>>
    >>> async with TCPSocketServer(Dispatcher({COMMAND_REQUEST_IP: assign})) as server:
    ...     await server.serve_forever()
"""

from wgdynamic.__version__ import __version__
from wgdynamic.core import (
    COMMAND_REQUEST_IP,
    PORT,
    SERVER_IP,
    CancellationToken,
    CancelledError,
    DecodeError,
    MalformedResponseError,
    ProtocolError,
    RequestIP,
    WgDynamicError,
)
from wgdynamic.server import Dispatcher, StaticPool
from wgdynamic.transport import Client, TCPSocketClient, TCPSocketServer

__all__ = [
    "__version__",
    # Types
    "RequestIP",
    "COMMAND_REQUEST_IP",
    "SERVER_IP",
    "PORT",
    # Client
    "Client",
    "TCPSocketClient",
    "CancellationToken",
    # Server
    "Dispatcher",
    "StaticPool",
    "TCPSocketServer",
    # Errors
    "WgDynamicError",
    "ProtocolError",
    "DecodeError",
    "MalformedResponseError",
    "CancelledError",
]
