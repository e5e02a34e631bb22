"""Tests for wgdynamic.server.dispatcher module."""

from __future__ import annotations

import asyncio
import logging
import threading
from ipaddress import ip_interface

import pytest

from wgdynamic.core.command import decode_lines, decode_response
from wgdynamic.core.errors import ProtocolError
from wgdynamic.core.types import COMMAND_REQUEST_IP, RequestIP
from wgdynamic.server.dispatcher import Dispatcher
from wgdynamic.server.protocols import INTERNAL_ERROR

PEER = ("fe80::1234", 970, 0, 3)
INTERNAL = b"request_ip=1\nerrno=1\nerrmsg=Internal server error\n\n"


def reader_for(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


async def dispatch(dispatcher: Dispatcher, data: bytes) -> bytes:
    return await dispatcher.dispatch(reader_for(data), PEER)


class TestDispatchErrors:
    """Every failure is reported as the generic internal error."""

    @pytest.mark.asyncio
    async def test_no_handler(self):
        """A known command without a handler."""
        assert await dispatch(Dispatcher(), b"request_ip=1\n\n") == INTERNAL

    @pytest.mark.asyncio
    async def test_unknown_command(self):
        """Unknown commands are answered under their own marker."""
        response = await dispatch(Dispatcher(), b"foo=1\n\n")

        assert response == b"foo=1\nerrno=1\nerrmsg=Internal server error\n\n"

    @pytest.mark.asyncio
    async def test_unknown_command_that_cannot_be_echoed(self):
        """A command name that would break framing is answered as request_ip."""
        assert await dispatch(Dispatcher(), b"req\ruest=1\n\n") == INTERNAL

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"\n",
            b"request_ip\n\n",
            b"request_ip=1\nipv4=bogus\n\n",
            b"request_ip=1\nipv4=2001:db8::1/128\n\n",
            b"request_ip=1\nleasetime=soon\n\n",
            b"request_ip=1\nipv4=\xff\n\n",
        ],
    )
    async def test_malformed_request(self, data: bytes):
        """Undecodable requests never reach the handler."""
        calls = []

        async def handler(peer, request):
            calls.append(request)
            return RequestIP()

        response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: handler}), data)

        assert response == INTERNAL
        assert calls == []

    @pytest.mark.asyncio
    async def test_request_too_large(self):
        dispatcher = Dispatcher({COMMAND_REQUEST_IP: lambda peer, req: RequestIP()}, max_message_size=32)

        response = await dispatch(dispatcher, b"request_ip=1\n" + b"x=1\n" * 20 + b"\n")

        assert response == INTERNAL

    @pytest.mark.asyncio
    async def test_handler_exception(self, caplog):
        """Handler errors are logged, not sent to the peer."""

        async def handler(peer, request):
            raise RuntimeError("database is down")

        with caplog.at_level(logging.ERROR, logger="wgdynamic.server.dispatcher"):
            response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: handler}), b"request_ip=1\n\n")

        assert response == INTERNAL
        assert b"database" not in response
        assert "database is down" in caplog.text

    @pytest.mark.asyncio
    async def test_handler_protocol_error_is_masked(self):
        """Even a ProtocolError raised by a handler becomes the generic error."""

        def handler(peer, request):
            raise ProtocolError(2, "Out of IPs")

        response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: handler}), b"request_ip=1\n\n")

        assert response == INTERNAL

    @pytest.mark.asyncio
    async def test_handler_returns_none(self):
        async def handler(peer, request):
            return None

        response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: handler}), b"request_ip=1\n\n")

        assert response == INTERNAL

    def test_internal_error_value(self):
        assert INTERNAL_ERROR == ProtocolError(1, "Internal server error")


class TestDispatchHandlers:
    """Tests for handler invocation."""

    @pytest.mark.asyncio
    async def test_async_handler(self):
        """The decoded request and peer reach the handler; its result is encoded."""
        seen = []

        async def handler(peer, request):
            seen.append((peer, request))
            return RequestIP(ipv4=ip_interface("192.0.2.7/32"))

        response = await dispatch(
            Dispatcher({COMMAND_REQUEST_IP: handler}),
            b"request_ip=1\nipv4=192.0.2.7/32\nleasetime=60\n\n",
        )

        assert response == b"request_ip=1\nipv4=192.0.2.7/32\n\n"
        assert seen[0][0] == PEER
        assert seen[0][1].ipv4 == ip_interface("192.0.2.7/32")
        assert seen[0][1].lease_time.total_seconds() == 60

    @pytest.mark.asyncio
    async def test_sync_handler_runs_in_thread(self):
        """Plain callables run off the event loop thread."""
        threads = []

        def handler(peer, request):
            threads.append(threading.get_ident())
            return RequestIP(ipv6=ip_interface("2001:db8::ffff/64"))

        response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: handler}), b"request_ip=1\n\n")

        assert response == b"request_ip=1\nipv6=2001:db8::ffff/64\n\n"
        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_callable_object_with_async_call(self):
        class Handler:
            async def __call__(self, peer, request):
                return RequestIP(ipv4=ip_interface("192.0.2.9/32"))

        response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: Handler()}), b"request_ip=1\n\n")

        assert response == b"request_ip=1\nipv4=192.0.2.9/32\n\n"

    @pytest.mark.asyncio
    async def test_register(self):
        dispatcher = Dispatcher()
        dispatcher.register(COMMAND_REQUEST_IP, lambda peer, request: RequestIP())

        assert await dispatch(dispatcher, b"request_ip=1\n\n") == b"request_ip=1\n\n"

    @pytest.mark.asyncio
    async def test_response_decodes(self, lease):
        """The response is a valid request_ip response for clients."""

        async def handler(peer, request):
            return lease

        response = await dispatch(Dispatcher({COMMAND_REQUEST_IP: handler}), b"request_ip=1\n\n")

        decoded = decode_response(decode_lines(response.splitlines(keepends=True)))
        assert decoded.unwrap() == lease


class TestServeConnection:
    """Tests for serve_connection over a real socket."""

    @pytest.mark.asyncio
    async def test_one_command_per_connection(self, lease):
        """The server answers once and closes the connection."""

        async def handler(peer, request):
            return lease

        server = await asyncio.start_server(
            Dispatcher({COMMAND_REQUEST_IP: handler}).serve_connection, "127.0.0.1", 0
        )
        async with server:
            host, port = server.sockets[0].getsockname()[:2]
            reader, writer = await asyncio.open_connection(host, port)
            writer.write(b"request_ip=1\n\nrequest_ip=1\n\n")
            await writer.drain()

            data = await asyncio.wait_for(reader.read(), timeout=5.0)
            writer.close()
            await writer.wait_closed()

        assert data == (
            b"request_ip=1\n"
            b"ipv4=192.0.2.1/32\n"
            b"ipv6=2001:db8::1/128\n"
            b"leasestart=1\n"
            b"leasetime=10\n"
            b"\n"
        )
