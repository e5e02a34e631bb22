"""Core - Pure protocol logic for wg-dynamic.

This module contains no knowledge of:
- Listening sockets or connection handling
- How handlers assign addresses
- Command-line frontends

Architecture:
    kvparser        key=value stream codec
    command         request_ip encoding/decoding
    types           RequestIP and protocol constants
    errors          Exception hierarchy
    cancellation    CancellationToken for client requests
    discovery       Link-local address lookup
    config          Settings from the environment
    logging_config  Logging setup

Example:
    >>> import io
    >>> from wgdynamic.core import decode_response
    >>>
    >>> decoded = decode_response(io.StringIO("request_ip=1\\nipv4=192.0.2.1/32\\n\\n"))
    >>> decoded.unwrap().ipv4
    IPv4Interface('192.0.2.1/32')
"""

from wgdynamic.core.cancellation import CancellationToken, CancelledError
from wgdynamic.core.command import (
    Decoded,
    decode_response,
    encode_error,
    encode_request_ip,
    parse,
    parse_request_ip,
    read_message,
)
from wgdynamic.core.errors import (
    AddressFamilyError,
    BadCIDRError,
    BadIntegerError,
    DecodeError,
    DiscoveryError,
    InterfaceNotFoundError,
    MalformedPairError,
    MalformedResponseError,
    MessageTooLargeError,
    NoLinkLocalAddressError,
    PoolExhaustedError,
    ProtocolError,
    WgDynamicError,
)
from wgdynamic.core.kvparser import KVParser, encode_pairs
from wgdynamic.core.types import (
    COMMAND_REQUEST_IP,
    PORT,
    PROTOCOL_VERSION,
    SERVER_IP,
    RequestIP,
)

__all__ = [
    # Codec
    "KVParser",
    "encode_pairs",
    # Command
    "Decoded",
    "decode_response",
    "encode_error",
    "encode_request_ip",
    "parse",
    "parse_request_ip",
    "read_message",
    # Types
    "RequestIP",
    "COMMAND_REQUEST_IP",
    "PROTOCOL_VERSION",
    "SERVER_IP",
    "PORT",
    # Cancellation
    "CancellationToken",
    "CancelledError",
    # Errors
    "WgDynamicError",
    "ProtocolError",
    "DecodeError",
    "MalformedPairError",
    "BadIntegerError",
    "BadCIDRError",
    "AddressFamilyError",
    "MessageTooLargeError",
    "MalformedResponseError",
    "DiscoveryError",
    "InterfaceNotFoundError",
    "NoLinkLocalAddressError",
    "PoolExhaustedError",
]
