"""Pytest configuration and shared helpers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from ipaddress import ip_interface

import pytest

from wgdynamic.core.types import RequestIP, unix_time
from wgdynamic.server.dispatcher import Dispatcher
from wgdynamic.server.protocols import Handler
from wgdynamic.transport.tcp_socket import TCPSocketClient, TCPSocketServer

IPV4 = ip_interface("192.0.2.1/32")
IPV6 = ip_interface("2001:db8::1/128")


@pytest.fixture
def lease() -> RequestIP:
    """A fully populated server response."""
    return RequestIP(
        ipv4=IPV4,
        ipv6=IPV6,
        lease_start=unix_time(1),
        lease_time=timedelta(seconds=10),
    )


@asynccontextmanager
async def _serving(handlers: dict[str, Handler]) -> AsyncIterator[TCPSocketClient]:
    """Run a real server on an ephemeral loopback port and yield a client for it."""
    server = TCPSocketServer(Dispatcher(handlers), host="127.0.0.1", port=0)
    async with server:
        yield TCPSocketClient(remote_addr=server.address)


@dataclass
class CannedServer:
    """Server that answers the first connection with a fixed response.

    The raw request bytes are captured in ``requests``.
    """

    response: bytes
    requests: list[bytes] = field(default_factory=list)
    _server: asyncio.Server | None = None

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        data = b""
        while not data.endswith(b"\n\n"):
            chunk = await reader.read(128)
            if not chunk:
                break
            data += chunk
        self.requests.append(data)

        writer.write(self.response)
        await writer.drain()
        writer.close()

    @property
    def client(self) -> TCPSocketClient:
        assert self._server is not None
        return TCPSocketClient(remote_addr=self._server.sockets[0].getsockname()[:2])

    async def __aenter__(self) -> CannedServer:
        self._server = await asyncio.start_server(self._handle, host="127.0.0.1", port=0)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        assert self._server is not None
        self._server.close()
        await self._server.wait_closed()


@pytest.fixture
def serving():
    """Factory: ``async with serving(handlers) as client``."""
    return _serving


@pytest.fixture
def canned_server():
    """Factory: ``async with canned_server(response) as server``."""
    return CannedServer
