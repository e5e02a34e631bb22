"""Dispatcher - serves one command per connection.

For each accepted connection the dispatcher:
- Reads and decodes exactly one command
- Looks up the handler registered for it and invokes it
- Writes the handler's result, or the generic internal error
- Closes the connection

Faults are never described to the peer. Whatever went wrong (bad framing,
unknown command, missing handler, handler exception) the peer receives
errno=1 "Internal server error"; the cause is only logged.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from wgdynamic.core.command import (
    MAX_MESSAGE_SIZE,
    decode_lines,
    encode_error,
    encode_request_ip,
    parse,
    parse_request_ip,
    read_message,
)
from wgdynamic.core.kvparser import KVParser
from wgdynamic.core.types import COMMAND_REQUEST_IP, RequestIP
from wgdynamic.server.protocols import INTERNAL_ERROR, Handler, PeerAddress

logger = logging.getLogger(__name__)

# Request decoders for every command the protocol defines.
_DECODERS: dict[str, Callable[[KVParser], RequestIP]] = {
    COMMAND_REQUEST_IP: parse_request_ip,
}


def _internal_error(command: str) -> bytes:
    """Encode INTERNAL_ERROR, echoing command when it can be written back."""
    try:
        return encode_error(command, INTERNAL_ERROR)
    except ValueError:
        return encode_error(COMMAND_REQUEST_IP, INTERNAL_ERROR)


@dataclass
class Dispatcher:
    """Per-connection command dispatcher.

    Example:
        >>> async def assign(peer, request):
        ...     return RequestIP(ipv4=ip_interface("192.0.2.1/32"))
        >>>
        >>> dispatcher = Dispatcher({COMMAND_REQUEST_IP: assign})
        >>> server = await asyncio.start_server(dispatcher.serve_connection, port=970)
    """

    handlers: dict[str, Handler] = field(default_factory=dict)
    max_message_size: int = MAX_MESSAGE_SIZE

    def register(self, command: str, handler: Handler) -> None:
        """Register (or replace) the handler for a command."""
        self.handlers[command] = handler

    async def serve_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Serve a single command, then close the connection."""
        peer: PeerAddress = writer.get_extra_info("peername") or ()

        try:
            response = await self.dispatch(reader, peer)
            writer.write(response)
            await writer.drain()
        except ConnectionError as e:
            logger.debug("Failed to write response to %s: %s", peer, e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError as e:
                logger.debug("Connection to %s closed with error: %s", peer, e)

    async def dispatch(self, reader: asyncio.StreamReader, peer: PeerAddress) -> bytes:
        """Decode one command from reader and return the encoded response."""
        command = COMMAND_REQUEST_IP

        try:
            raw = await read_message(reader, self.max_message_size)
            p, command = parse(decode_lines(raw))
            decoder = _DECODERS.get(command)
            if decoder is None:
                logger.warning("Unknown command %r from %s", command, peer)
                return _internal_error(command)
            request = decoder(p)
        except Exception as e:
            logger.warning("Failed to decode command from %s: %s", peer, e)
            return _internal_error(command)

        handler = self.handlers.get(command)
        if handler is None:
            logger.warning("No handler registered for %s (peer %s)", command, peer)
            return _internal_error(command)

        try:
            result = await self._invoke(handler, peer, request)
            if result is None:
                raise ValueError("handler returned no result")
            response = encode_request_ip(result, command)
        except Exception as e:
            logger.error("Handler for %s failed for %s: %s", command, peer, e, exc_info=True)
            return _internal_error(command)

        logger.info("Served %s for %s: %s", command, peer, result)
        return response

    async def _invoke(
        self, handler: Handler, peer: PeerAddress, request: RequestIP
    ) -> RequestIP | None:
        """Run a handler, off the event loop unless it is a coroutine function."""
        if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
            getattr(handler, "__call__", None)
        ):
            return await handler(peer, request)  # type: ignore[misc]

        result = await asyncio.to_thread(handler, peer, request)
        if inspect.isawaitable(result):
            result = await result
        return result  # type: ignore[return-value]
