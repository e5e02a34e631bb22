"""TCP socket transport.

Provides the wg-dynamic client and the listening server. Every exchange uses
its own connection: the client connects, writes one request, reads one
response and closes; the server answers one command per connection.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from wgdynamic.core.cancellation import CancellationToken, CancelledError
from wgdynamic.core.command import (
    MAX_MESSAGE_SIZE,
    decode_lines,
    decode_response,
    encode_request_ip,
    read_message,
)
from wgdynamic.core.discovery import discover
from wgdynamic.core.types import PORT, SERVER_IP, RequestIP
from wgdynamic.server.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TCPSocketClient:
    """wg-dynamic client.

    Requests IP address assignment from a server. The endpoints are fixed
    for the lifetime of the client; each request opens a new connection.

    Example:
        >>> client = TCPSocketClient.for_interface("wg0")
        >>> lease = await client.request_ip(
        ...     RequestIP(ipv4=ip_interface("192.0.2.1/32")),
        ...     timeout=5.0,
        ... )
        >>> print(lease.ipv4, lease.lease_time)
    """

    remote_addr: tuple[str, int]
    local_addr: tuple[str, int] | None = None
    max_message_size: int = MAX_MESSAGE_SIZE

    @classmethod
    def for_interface(cls, iface: str, port: int = PORT) -> TCPSocketClient:
        """Create a client bound to a WireGuard interface.

        The client uses the interface's IPv6 link-local address and talks to
        the well-known server address on the same link.

        Raises:
            InterfaceNotFoundError: If the interface does not exist.
            NoLinkLocalAddressError: If it has no IPv6 link-local address.
        """
        link_local = discover(iface)
        return cls(
            remote_addr=(f"{SERVER_IP}%{iface}", port),
            local_addr=(link_local.scoped, port),
        )

    async def request_ip(
        self,
        request: RequestIP | None = None,
        *,
        cancellation: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> RequestIP:
        """Request IP address assignment from the server.

        Args:
            request: Addresses and minimum lease time to ask for. None asks
                for automatic assignment.
            cancellation: Token that aborts the request when cancelled.
            timeout: Seconds to wait for the whole exchange.

        Returns:
            The assignment granted by the server.

        Raises:
            ValueError: If request carries a lease start (server-only field).
            ProtocolError: If the server reported an error.
            MalformedResponseError: If the server answered another command.
            DecodeError: If the response could not be decoded.
            CancelledError: If the token was cancelled first.
            TimeoutError: If the timeout elapsed first.
            OSError: On connection failures.
        """
        if request is not None and request.lease_start is not None:
            raise ValueError("wgdynamic: clients cannot specify a lease start time")

        done = asyncio.Event()
        exchange = asyncio.ensure_future(self._exchange(request))
        watcher = asyncio.ensure_future(self._watch(exchange, done, cancellation, timeout))

        try:
            return await exchange
        except asyncio.CancelledError:
            # Either the watcher aborted the exchange, or our own task was
            # cancelled; only the former turns into a timeout-style error.
            done.set()
            reason = await watcher
            if reason is None:
                raise
            raise reason from None
        finally:
            done.set()
            await watcher

    async def _exchange(self, request: RequestIP | None) -> RequestIP:
        """Perform one request/response exchange on a fresh connection."""
        host, port = self.remote_addr
        reader, writer = await asyncio.open_connection(host, port, local_addr=self.local_addr)
        logger.debug("Connected to %s:%s", host, port)

        try:
            writer.write(encode_request_ip(request))
            await writer.drain()
            raw = await read_message(reader, self.max_message_size)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError as e:
                logger.debug("Connection to %s:%s closed with error: %s", host, port, e)

        return decode_response(decode_lines(raw)).unwrap()

    async def _watch(
        self,
        exchange: asyncio.Future[Any],
        done: asyncio.Event,
        cancellation: CancellationToken | None,
        timeout: float | None,
    ) -> Exception | None:
        """Abort exchange if cancellation or timeout come before done.

        Returns:
            The error the request should fail with, or None if the exchange
            finished on its own.
        """
        waiters = [asyncio.ensure_future(done.wait())]
        if cancellation is not None:
            waiters.append(asyncio.ensure_future(cancellation.wait()))

        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

        if done.is_set():
            return None

        reason: Exception
        if cancellation is not None and cancellation.is_cancelled:
            reason = CancelledError(cancellation.reason)
        else:
            reason = TimeoutError(f"wgdynamic: request timed out after {timeout}s")

        logger.debug("Aborting request to %s: %s", self.remote_addr, reason)
        exchange.cancel()
        return reason


Client = TCPSocketClient


@dataclass
class TCPSocketServer:
    """TCP socket server transport.

    Listens for wg-dynamic clients and hands every accepted connection to
    the dispatcher, each in its own task.

    Example:
        >>> dispatcher = Dispatcher({COMMAND_REQUEST_IP: StaticPool(...)})
        >>> async with TCPSocketServer(dispatcher, host="fe80::1%wg0") as server:
        ...     await server.serve_forever()
    """

    dispatcher: Dispatcher
    host: str | None = "::"
    port: int = PORT
    _server: asyncio.Server | None = field(default=None, repr=False)
    _stopped: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    async def start(self) -> None:
        """Bind the listening socket. No-op if already started."""
        if self._server is not None:
            return

        self._stopped.clear()
        self._server = await asyncio.start_server(
            self.dispatcher.serve_connection,
            host=self.host,
            port=self.port,
        )
        logger.info("wg-dynamic server listening on %s", self.address)

    @property
    def address(self) -> tuple[str, int]:
        """Address of the first bound socket (useful with port 0)."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("Server not started")

        sockname = self._server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    async def serve_forever(self) -> None:
        """Start (if needed) and serve until stop() is called."""
        await self.start()
        await self._stopped.wait()

    async def stop(self) -> None:
        """Stop listening and wait for the listener to close."""
        if self._server is None:
            return

        server, self._server = self._server, None
        server.close()
        await server.wait_closed()
        self._stopped.set()

        logger.info("wg-dynamic server stopped")

    async def __aenter__(self) -> TCPSocketServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
