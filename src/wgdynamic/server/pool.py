"""In-memory address pool handler.

StaticPool hands out host addresses from an IPv4 and/or IPv6 network and
remembers which peer holds which address. It is what ``wgdynamic serve``
uses; embedding applications usually register their own handler instead.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import timedelta
from ipaddress import IPv4Network, IPv6Network, ip_interface
from typing import Any

from wgdynamic.core.errors import PoolExhaustedError
from wgdynamic.core.types import RequestIP, utc_now
from wgdynamic.server.protocols import PeerAddress

logger = logging.getLogger(__name__)

DEFAULT_LEASE_TIME = timedelta(hours=1)


@dataclass
class _Family:
    """Allocation table for one address family."""

    network: IPv4Network | IPv6Network
    by_peer: dict[str, Any] = field(default_factory=dict)
    by_address: dict[Any, str] = field(default_factory=dict)

    def _reserved(self) -> set[Any]:
        base = self.network.network_address
        return {base, base + 1, self.network.broadcast_address}

    def _candidates(self) -> Iterator[Any]:
        # Hosts of the network, skipping the first one (the server's own address).
        hosts = self.network.hosts()
        next(hosts, None)
        yield from hosts

    def assign(self, peer: str, wanted: Any | None) -> Any:
        if peer in self.by_peer:
            return self.by_peer[peer]

        if (
            wanted is not None
            and wanted.ip in self.network
            and wanted.ip not in self.by_address
            and wanted.ip not in self._reserved()
        ):
            address = wanted.ip
        else:
            address = next((a for a in self._candidates() if a not in self.by_address), None)
            if address is None:
                raise PoolExhaustedError(f"wgdynamic: address pool {self.network} exhausted")

        self.by_peer[peer] = address
        self.by_address[address] = peer
        return address

    def release(self, peer: str) -> None:
        address = self.by_peer.pop(peer, None)
        if address is not None:
            self.by_address.pop(address, None)


class StaticPool:
    """request_ip handler backed by fixed networks.

    Args:
        ipv4_network: Network to assign IPv4 addresses from.
        ipv6_network: Network to assign IPv6 addresses from.
        lease_time: Lease length granted to every peer, at least the
            client's requested minimum.

    Example:
        >>> pool = StaticPool(ipv4_network=IPv4Network("192.0.2.0/24"))
        >>> dispatcher = Dispatcher({COMMAND_REQUEST_IP: pool})
    """

    def __init__(
        self,
        ipv4_network: IPv4Network | None = None,
        ipv6_network: IPv6Network | None = None,
        lease_time: timedelta = DEFAULT_LEASE_TIME,
    ) -> None:
        if ipv4_network is None and ipv6_network is None:
            raise ValueError("StaticPool needs at least one network")

        self.lease_time = lease_time
        self._ipv4 = _Family(ipv4_network) if ipv4_network is not None else None
        self._ipv6 = _Family(ipv6_network) if ipv6_network is not None else None
        # Handlers run concurrently in worker threads.
        self._lock = threading.Lock()

    def __call__(self, peer: PeerAddress, request: RequestIP) -> RequestIP:
        key = str(peer[0]) if peer else ""

        with self._lock:
            fresh_ipv4 = self._ipv4 is not None and key not in self._ipv4.by_peer
            ipv4 = self._ipv4.assign(key, request.ipv4) if self._ipv4 else None
            try:
                ipv6 = self._ipv6.assign(key, request.ipv6) if self._ipv6 else None
            except PoolExhaustedError:
                # A failed request must not hold on to a new IPv4 address.
                if fresh_ipv4 and self._ipv4 is not None:
                    self._ipv4.release(key)
                raise

        lease_time = self.lease_time
        if request.lease_time is not None and request.lease_time > lease_time:
            lease_time = request.lease_time

        logger.debug("Assigned ipv4=%s ipv6=%s to %s", ipv4, ipv6, key)
        return RequestIP(
            ipv4=ip_interface(f"{ipv4}/32") if ipv4 is not None else None,  # type: ignore[arg-type]
            ipv6=ip_interface(f"{ipv6}/128") if ipv6 is not None else None,  # type: ignore[arg-type]
        ).with_lease(utc_now(), lease_time)

    def release(self, peer: str) -> None:
        """Forget the addresses held by peer."""
        with self._lock:
            for family in (self._ipv4, self._ipv6):
                if family is not None:
                    family.release(peer)
