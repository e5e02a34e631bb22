"""request_ip command encoding and decoding.

Maps RequestIP values onto the key=value codec. The first pair of every
message names the command and carries the protocol version::

    request_ip=1
    ipv4=192.0.2.1/32
    ipv6=2001:db8::1/128
    leasestart=1
    leasetime=10

Responses may additionally carry errno/errmsg, which decode into a
ProtocolError instead of a payload.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import timedelta
from typing import TypeVar

from wgdynamic.core.errors import (
    BadIntegerError,
    MalformedResponseError,
    MessageTooLargeError,
    ProtocolError,
)
from wgdynamic.core.kvparser import KEY_ERRMSG, KEY_ERRNO, KVParser, encode_pairs
from wgdynamic.core.types import COMMAND_REQUEST_IP, PROTOCOL_VERSION, RequestIP, unix_time

# Upper bound for a single message, terminator included.
MAX_MESSAGE_SIZE = 64 * 1024

# Field keys, in wire order.
KEY_IPV4 = "ipv4"
KEY_IPV6 = "ipv6"
KEY_LEASE_START = "leasestart"
KEY_LEASE_TIME = "leasetime"

T = TypeVar("T")


@dataclass(frozen=True)
class Decoded:
    """Result of decoding a response: either a payload or a protocol fault.

    Attributes:
        command: The command marker of the response.
        payload: The decoded assignment, if the server reported success.
        fault: The error reported by the server, if any.
    """

    command: str
    payload: RequestIP | None = None
    fault: ProtocolError | None = None

    @property
    def ok(self) -> bool:
        """Whether the response carried a payload."""
        return self.fault is None

    def unwrap(self) -> RequestIP:
        """Return the payload or raise the protocol fault."""
        if self.fault is not None:
            raise self.fault
        assert self.payload is not None
        return self.payload


def _marker(command: str) -> tuple[str, str]:
    return command, str(PROTOCOL_VERSION)


def encode_request_ip(rip: RequestIP | None, command: str = COMMAND_REQUEST_IP) -> bytes:
    """Encode a request_ip command with its optional fields.

    Fields that are absent are omitted entirely. Lease start and lease time
    are truncated to whole seconds.
    """
    pairs = [_marker(command)]
    if rip is None:
        return encode_pairs(pairs)

    if rip.ipv4 is not None:
        pairs.append((KEY_IPV4, str(rip.ipv4)))
    if rip.ipv6 is not None:
        pairs.append((KEY_IPV6, str(rip.ipv6)))
    if rip.lease_start is not None:
        pairs.append((KEY_LEASE_START, str(int(rip.lease_start.timestamp()))))
    if rip.lease_time is not None and rip.lease_time.total_seconds() > 0:
        pairs.append((KEY_LEASE_TIME, str(int(rip.lease_time.total_seconds()))))

    return encode_pairs(pairs)


def encode_error(command: str, error: ProtocolError) -> bytes:
    """Encode a response carrying only a protocol error."""
    return encode_pairs(
        [
            _marker(command),
            (KEY_ERRNO, str(error.number)),
            (KEY_ERRMSG, error.message),
        ]
    )


def parse(lines: Iterable[str]) -> tuple[KVParser, str]:
    """Begin parsing a request or response.

    Consumes the first pair and returns the parser positioned after it,
    together with the command name.

    Raises:
        Exception: The parser's terminal error if there is no first pair.
        MalformedResponseError: If the message is empty.
    """
    p = KVParser(lines)
    if not p.next():
        err = p.err()
        if err is not None:
            raise err
        raise MalformedResponseError("wgdynamic: empty message")

    return p, p.key


def _seconds(p: KVParser, convert: Callable[[int], T]) -> T | None:
    """Convert the current integer value, recording out-of-range values on p."""
    n = p.int()
    try:
        return convert(n)
    except (OverflowError, ValueError, OSError):
        p.fail(BadIntegerError(f"wgdynamic: integer out of range: {p.value!r}"))
        return None


def parse_request_ip(p: KVParser) -> RequestIP:
    """Parse the remaining pairs of a request_ip command.

    Unknown keys are ignored.

    Raises:
        Exception: The parser's terminal error, if any.
    """
    fields: dict[str, object] = {}
    for key, _ in p.pairs():
        if key == KEY_IPV4:
            fields["ipv4"] = p.ip_interface(4)
        elif key == KEY_IPV6:
            fields["ipv6"] = p.ip_interface(6)
        elif key == KEY_LEASE_START:
            fields["lease_start"] = _seconds(p, unix_time)
        elif key == KEY_LEASE_TIME:
            fields["lease_time"] = _seconds(p, lambda n: timedelta(seconds=n))

    err = p.err()
    if err is not None:
        raise err

    return RequestIP(**fields)  # type: ignore[arg-type]


def decode_response(lines: Iterable[str], expected: str = COMMAND_REQUEST_IP) -> Decoded:
    """Decode a response into a payload or a protocol fault.

    Raises:
        MalformedResponseError: If the response names a different command.
        DecodeError: If the stream is malformed.
        OSError: If the underlying stream failed.
    """
    p, command = parse(lines)
    if command != expected:
        raise MalformedResponseError(
            f"wgdynamic: server sent malformed {expected} command response: got {command!r}"
        )

    try:
        payload = parse_request_ip(p)
    except ProtocolError as e:
        return Decoded(command=command, fault=e)

    return Decoded(command=command, payload=payload)


def decode_lines(raw: Iterable[bytes]) -> Iterator[str]:
    """Lazily decode raw lines as UTF-8.

    Decoding happens while the parser iterates, so invalid bytes surface as
    the parser's stream fault.
    """
    for line in raw:
        yield line.decode()


async def read_message(reader: asyncio.StreamReader, limit: int = MAX_MESSAGE_SIZE) -> list[bytes]:
    """Read one message, up to and including its blank terminator line.

    A message cut short by end of stream is returned as read; the parser
    treats end of input like a terminator.

    Raises:
        MessageTooLargeError: If more than ``limit`` bytes arrive first, or
            a single line overruns the reader's own buffer limit.
    """
    lines: list[bytes] = []
    size = 0
    while True:
        try:
            line = await reader.readline()
        except (ValueError, asyncio.LimitOverrunError) as e:
            raise MessageTooLargeError(f"wgdynamic: message line too long: {e}") from e
        if not line:
            return lines

        size += len(line)
        if size > limit:
            raise MessageTooLargeError(f"wgdynamic: message exceeds {limit} bytes")

        lines.append(line)
        if line in (b"\n", b"\r\n"):
            return lines
