"""Transport - TCP communication adapters.

Transport adapters move wg-dynamic messages over the network. The client
performs one exchange per connection; the server accepts connections and
hands each one to a Dispatcher.

Available transports:
    TCPSocketClient: Requests addresses from a server (alias: Client).
    TCPSocketServer: Listens for clients and dispatches their commands.

Example (client):
    >>> from wgdynamic.transport import TCPSocketClient
    >>>
    >>> client = TCPSocketClient.for_interface("wg0")
    >>> lease = await client.request_ip(timeout=5.0)

Example (server):
    >>> from wgdynamic.server import Dispatcher, StaticPool
    >>> from wgdynamic.transport import TCPSocketServer
    >>>
    >>> dispatcher = Dispatcher({"request_ip": StaticPool(ipv4_network=...)})
    >>> async with TCPSocketServer(dispatcher) as server:
    ...     await server.serve_forever()
"""

from wgdynamic.transport.protocol import ClientTransport, ServerTransport
from wgdynamic.transport.tcp_socket import Client, TCPSocketClient, TCPSocketServer

__all__ = [
    # Protocols
    "ClientTransport",
    "ServerTransport",
    # Implementations
    "Client",
    "TCPSocketClient",
    "TCPSocketServer",
]
