"""Pure data types for wgdynamic.core.

These are simple dataclasses with no I/O coupling.
They are passed between the client, the dispatcher and request handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from ipaddress import IPv4Interface, IPv6Interface
from typing import Any

# Well-known server address and port for wg-dynamic.
SERVER_IP = "fe80::"
PORT = 970

# The only command defined by the protocol, and its version marker.
COMMAND_REQUEST_IP = "request_ip"
PROTOCOL_VERSION = 1


@dataclass(frozen=True)
class RequestIP:
    """IP address assignment exchanged by a request_ip command.

    The same shape is used in both directions. In a client request the
    addresses are preferences and lease_time is the minimum acceptable lease;
    in a server response they are the granted assignment.

    Attributes:
        ipv4: IPv4 address with prefix length, or None.
        ipv6: IPv6 address with prefix length, or None.
        lease_start: Start of lease validity (server only), UTC.
        lease_time: Length of the lease.
    """

    ipv4: IPv4Interface | None = None
    ipv6: IPv6Interface | None = None
    lease_start: datetime | None = None
    lease_time: timedelta | None = None

    def with_lease(self, start: datetime, length: timedelta) -> RequestIP:
        """Return a copy carrying lease start and length."""
        return replace(self, lease_start=start, lease_time=length)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "ipv4": str(self.ipv4) if self.ipv4 is not None else None,
            "ipv6": str(self.ipv6) if self.ipv6 is not None else None,
            "lease_start": self.lease_start.isoformat() if self.lease_start else None,
            "lease_time": int(self.lease_time.total_seconds()) if self.lease_time else None,
        }


def unix_time(seconds: int) -> datetime:
    """Convert whole unix seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds (wire precision)."""
    return datetime.now(tz=timezone.utc).replace(microsecond=0)
