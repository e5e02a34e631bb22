"""Link-local address discovery.

A wg-dynamic client talks to the server over the IPv6 link-local address of
its WireGuard interface. This module finds that address.

find_link_local() works on typed addresses only, so it is easy to test;
interface_addresses() is the thin OS-facing part built on psutil.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Iterable
from dataclasses import dataclass
from ipaddress import IPv4Interface, IPv6Address, IPv6Interface, ip_address, ip_interface

import psutil

from wgdynamic.core.errors import InterfaceNotFoundError, NoLinkLocalAddressError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkLocalAddress:
    """An IPv6 link-local address bound to a named interface.

    Attributes:
        interface: Interface name, used as the IPv6 zone.
        address: The link-local address.
    """

    interface: str
    address: IPv6Address

    @property
    def scoped(self) -> str:
        """Address with zone suffix, e.g. ``fe80::1%wg0``."""
        return f"{self.address}%{self.interface}"


def find_link_local(
    iface: str, addrs: Iterable[IPv4Interface | IPv6Interface]
) -> LinkLocalAddress | None:
    """Return the first IPv6 link-local unicast address in addrs, if any."""
    for addr in addrs:
        if isinstance(addr, IPv6Interface) and addr.ip.is_link_local:
            return LinkLocalAddress(interface=iface, address=addr.ip)
    return None


def _prefix_length(netmask: str) -> int:
    """Count the set bits of a dotted or colon-separated netmask."""
    return bin(int(ip_address(netmask))).count("1")


def interface_addresses(iface: str) -> list[IPv4Interface | IPv6Interface]:
    """List the IP addresses configured on an interface.

    Raises:
        InterfaceNotFoundError: If the interface does not exist.
    """
    table = psutil.net_if_addrs()
    if iface not in table:
        raise InterfaceNotFoundError(f"wgdynamic: no such interface: {iface!r}")

    addrs: list[IPv4Interface | IPv6Interface] = []
    for snic in table[iface]:
        if snic.family not in (socket.AF_INET, socket.AF_INET6):
            continue

        # IPv6 addresses may carry a zone suffix ("fe80::1%wg0").
        address = snic.address.split("%", 1)[0]
        try:
            prefix = _prefix_length(snic.netmask) if snic.netmask else None
            addrs.append(ip_interface(f"{address}/{prefix}" if prefix is not None else address))
        except ValueError:
            logger.debug("Skipping unparseable address %s on %s", snic.address, iface)

    return addrs


def discover(iface: str) -> LinkLocalAddress:
    """Find the link-local address to use for wg-dynamic on iface.

    Raises:
        InterfaceNotFoundError: If the interface does not exist.
        NoLinkLocalAddressError: If it has no IPv6 link-local address.
    """
    found = find_link_local(iface, interface_addresses(iface))
    if found is None:
        raise NoLinkLocalAddressError(
            f"wgdynamic: no link-local IPv6 address for interface {iface!r}"
        )

    logger.debug("Discovered link-local address %s", found.scoped)
    return found
