"""Key/value stream codec.

wg-dynamic messages are a series of ``key=value`` lines terminated by a
single empty line::

    request_ip=1
    ipv4=192.0.2.1/32
    leasetime=10

KVParser scans such a stream one pair at a time. Decode faults are sticky and
reported once at the end through err(), so a caller can read every field
without checking for errors after each access:

    >>> p = KVParser(io.StringIO("request_ip=1\\nleasetime=10\\n\\n"))
    >>> while p.next():
    ...     if p.key == "leasetime":
    ...         seconds = p.int()
    >>> if (err := p.err()) is not None:
    ...     raise err

The reserved keys ``errno`` and ``errmsg`` never reach the caller; they
accumulate into a ProtocolError which err() reports last.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from ipaddress import IPv4Interface, IPv6Interface, ip_interface
from typing import Literal, overload

from wgdynamic.core.errors import (
    AddressFamilyError,
    BadCIDRError,
    BadIntegerError,
    MalformedPairError,
    ProtocolError,
)

# Reserved keys carrying an in-band protocol error.
KEY_ERRNO = "errno"
KEY_ERRMSG = "errmsg"

# Signed decimal, as accepted on the wire (no whitespace or underscores).
_INT_PATTERN = re.compile(r"^[+-]?[0-9]+$")

# CIDR prefix length: decimal digits only.
_PREFIX_PATTERN = re.compile(r"^[0-9]+$")


class KVParser:
    """Stateful scanner over a stream of key=value lines.

    Args:
        lines: Any iterable of text lines, e.g. an io.StringIO or a list of
            lines already read from a socket. Line endings are stripped.
    """

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines: Iterator[str] = iter(lines)
        self._stream_error: Exception | None = None
        self._error: Exception | None = None
        self._done = False
        self._errno = 0
        self._errmsg = ""
        self.key = ""
        self.value = ""

    def next(self) -> bool:
        """Advance to the next key=value pair.

        Returns:
            True if a pair is available, False at the terminator, at end of
            input, or once any fault has been recorded.
        """
        while True:
            if self._done or self._error is not None:
                return False

            try:
                line = next(self._lines)
            except StopIteration:
                self._done = True
                return False
            except (OSError, UnicodeDecodeError) as e:
                self._stream_error = e
                self._done = True
                return False

            line = line.rstrip("\n").rstrip("\r")
            if line == "":
                self._done = True
                return False

            kvs = line.split("=")
            if len(kvs) != 2:
                self._error = MalformedPairError(
                    f"wgdynamic: malformed key/value pair: {line!r}"
                )
                return False

            self.key, self.value = kvs

            # Error pairs are consumed here so callers only see ordinary fields.
            if self.key == KEY_ERRNO:
                self._errno = self.int()
                continue
            if self.key == KEY_ERRMSG:
                self._errmsg = self.string()
                continue

            return True

    def pairs(self) -> Iterator[tuple[str, str]]:
        """Iterate over the remaining (key, value) pairs."""
        while self.next():
            yield self.key, self.value

    def int(self) -> int:
        """Parse the current value as a signed integer."""
        if self._error is not None:
            return 0

        if not _INT_PATTERN.match(self.value):
            self._error = BadIntegerError(f"wgdynamic: bad integer: {self.value!r}")
            return 0

        return int(self.value)

    def string(self) -> str:
        """Return the current value."""
        if self._error is not None:
            return ""
        return self.value

    @overload
    def ip_interface(self, family: Literal[4]) -> IPv4Interface | None: ...

    @overload
    def ip_interface(self, family: Literal[6]) -> IPv6Interface | None: ...

    def ip_interface(self, family: int) -> IPv4Interface | IPv6Interface | None:
        """Parse the current value as an address with prefix length.

        The address keeps its host bits, so ``2001:db8::ffff/64`` is returned
        as written rather than collapsed to its network. The prefix must be a
        decimal length; netmasks and IPv6 zones are rejected.

        An IPv4-mapped IPv6 value (``::ffff:192.0.2.1/128``) counts as IPv4:
        it is returned in IPv4 form for family 4 and rejected for family 6.

        Args:
            family: 4 or 6; the parsed address must belong to this family.

        Raises:
            ValueError: If family is not 4 or 6.
        """
        if family not in (4, 6):
            raise ValueError(f"wgdynamic: bad address family parameter: {family}")

        if self._error is not None:
            return None

        address, _, prefix = self.value.partition("/")
        if not _PREFIX_PATTERN.match(prefix) or "%" in address:
            self._error = BadCIDRError(f"wgdynamic: bad CIDR: {self.value!r}")
            return None

        try:
            ipi = ip_interface(self.value)
        except ValueError:
            self._error = BadCIDRError(f"wgdynamic: bad CIDR: {self.value!r}")
            return None

        if ipi.version == 6 and ipi.ip.ipv4_mapped is not None and ipi.network.prefixlen >= 96:
            ipi = IPv4Interface(f"{ipi.ip.ipv4_mapped}/{ipi.network.prefixlen - 96}")

        if ipi.version != family:
            self._error = AddressFamilyError(
                f"wgdynamic: bad IPv{family} CIDR: {self.value!r}"
            )
            return None

        return ipi

    def fail(self, error: Exception) -> None:
        """Record a decode fault found by the caller while converting a value.

        The first fault wins, as with the built-in accessors.
        """
        if self._error is None:
            self._error = error

    def err(self) -> Exception | None:
        """Return the terminal error for this stream, if any.

        In priority order: a fault raised by the underlying line source, a
        local decode fault, then a protocol error with a non-zero number.
        """
        if self._stream_error is not None:
            return self._stream_error

        if self._error is not None:
            return self._error

        if self._errno != 0:
            return ProtocolError(self._errno, self._errmsg)

        return None


def encode_pairs(pairs: Iterable[tuple[str, str]]) -> bytes:
    """Serialize pairs as key=value lines followed by the blank terminator.

    Raises:
        ValueError: If a key or value would break the line framing.
    """
    lines = []
    for key, value in pairs:
        for part in (key, value):
            if "=" in part or "\n" in part or "\r" in part:
                raise ValueError(f"wgdynamic: cannot encode key/value part: {part!r}")
        lines.append(f"{key}={value}\n")

    lines.append("\n")
    return "".join(lines).encode()
