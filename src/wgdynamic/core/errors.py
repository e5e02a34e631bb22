"""wg-dynamic error types.

Custom exceptions for protocol faults, decode failures and local collaborators.
"""

from __future__ import annotations


class WgDynamicError(Exception):
    """Base error for wg-dynamic operations."""


class ProtocolError(WgDynamicError):
    """Fault reported by the remote end via errno/errmsg.

    This is the error callers are expected to inspect: ``number`` is always
    non-zero, ``message`` may be empty when the server sent no errmsg.

    Example:
        >>> try:
        ...     await client.request_ip()
        ... except ProtocolError as e:
        ...     print(e.number, e.message)
    """

    def __init__(self, number: int, message: str = "") -> None:
        super().__init__(number, message)
        self.number = number
        self.message = message

    def __str__(self) -> str:
        return f"wgdynamic: error {self.number}: {self.message}"

    def __repr__(self) -> str:
        return f"ProtocolError(number={self.number!r}, message={self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProtocolError):
            return NotImplemented
        return self.number == other.number and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.number, self.message))


class DecodeError(WgDynamicError, ValueError):
    """A key=value stream could not be decoded."""


class MalformedPairError(DecodeError):
    """A non-empty line did not contain exactly one '=' separator."""


class BadIntegerError(DecodeError):
    """A value could not be parsed as a signed integer."""


class BadCIDRError(DecodeError):
    """A value could not be parsed as an address with prefix length."""


class AddressFamilyError(BadCIDRError):
    """A CIDR value parsed, but belongs to the wrong address family."""


class MessageTooLargeError(DecodeError):
    """A message exceeded the maximum size before its terminator."""


class MalformedResponseError(WgDynamicError):
    """The remote end answered with a different command than the one sent."""


class DiscoveryError(WgDynamicError):
    """Base error for interface/address discovery."""


class InterfaceNotFoundError(DiscoveryError):
    """The named network interface does not exist."""


class NoLinkLocalAddressError(DiscoveryError):
    """The interface has no IPv6 link-local address configured."""


class PoolExhaustedError(WgDynamicError):
    """No free address is left in an address pool."""
