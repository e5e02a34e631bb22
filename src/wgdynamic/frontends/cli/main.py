"""CLI entry point."""

from __future__ import annotations

import asyncio
import os
from datetime import timedelta
from ipaddress import IPv4Network, IPv6Network, ip_interface, ip_network
from typing import Any

import rich_click as click

from wgdynamic.core.config import ConfigError, Settings
from wgdynamic.core.errors import WgDynamicError
from wgdynamic.core.logging_config import configure_logging
from wgdynamic.core.types import COMMAND_REQUEST_IP, RequestIP
from wgdynamic.frontends.cli.output import error_exit, output_json, print_lease
from wgdynamic.server.dispatcher import Dispatcher
from wgdynamic.server.pool import StaticPool
from wgdynamic.transport.protocol import ClientTransport
from wgdynamic.transport.tcp_socket import TCPSocketClient, TCPSocketServer

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.MAX_WIDTH = 100


def parse_host_port(value: str) -> tuple[str, int]:
    """Split ``host:port`` or ``[v6-host]:port``."""
    if value.startswith("["):
        host, sep, port = value[1:].partition("]:")
    else:
        host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"expected HOST:PORT, got {value!r}")
    return host, int(port)


def _interface_option(family: int) -> Any:
    def convert(ctx: click.Context, param: click.Parameter, value: str | None) -> Any:
        if value is None:
            return None
        try:
            ipi = ip_interface(value)
        except ValueError as e:
            raise click.BadParameter(str(e)) from None
        if ipi.version != family or "/" not in value:
            raise click.BadParameter(f"expected an IPv{family} CIDR, got {value!r}")
        return ipi

    return convert


def _network_option(family: int) -> Any:
    def convert(
        ctx: click.Context, param: click.Parameter, value: str | None
    ) -> IPv4Network | IPv6Network | None:
        if value is None:
            return None
        try:
            network = ip_network(value)
        except ValueError as e:
            raise click.BadParameter(str(e)) from None
        if network.version != family:
            raise click.BadParameter(f"expected an IPv{family} network, got {value!r}")
        return network

    return convert


def _settings() -> Settings:
    try:
        return Settings.from_env()
    except ConfigError as e:
        error_exit(str(e))


@click.group()
@click.version_option(package_name="wgdynamic")
@click.option("--log-level", default=None, help="Log level (default: WGDYNAMIC_LOG_LEVEL or WARNING)")
def cli(log_level: str | None) -> None:
    """wgdynamic - Dynamic IP address leases for WireGuard peers.

    **Commands:**

        wgdynamic request-ip   Ask the server on an interface for addresses

        wgdynamic serve        Run a server that assigns addresses from a pool
    """
    configure_logging(level=log_level or os.environ.get("WGDYNAMIC_LOG_LEVEL", "WARNING"))


@cli.command("request-ip")
@click.argument("iface", required=False)
@click.option("--ipv4", callback=_interface_option(4), help="Request this IPv4 CIDR")
@click.option("--ipv6", callback=_interface_option(6), help="Request this IPv6 CIDR")
@click.option("--lease-time", type=click.IntRange(min=1), default=None, help="Minimum lease (seconds)")
@click.option("--remote", default=None, help="Server HOST:PORT (default: well-known address on IFACE)")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def request_ip(
    iface: str | None,
    ipv4: Any,
    ipv6: Any,
    lease_time: int | None,
    remote: str | None,
    timeout: float | None,
    json_output: bool,
) -> None:
    """Request IP address assignment from a wg-dynamic server.

    **Examples:**

        wgdynamic request-ip wg0

        wgdynamic request-ip wg0 --ipv4 192.0.2.10/32 --lease-time 3600

        wgdynamic request-ip --remote [fe80::%wg0]:970 --json
    """
    settings = _settings()

    client: ClientTransport
    if remote is not None:
        try:
            client = TCPSocketClient(remote_addr=parse_host_port(remote))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--remote") from None
    elif iface is not None:
        try:
            client = TCPSocketClient.for_interface(iface, port=settings.port)
        except WgDynamicError as e:
            error_exit(str(e))
    else:
        raise click.UsageError("Either IFACE or --remote is required")

    request = None
    if ipv4 is not None or ipv6 is not None or lease_time is not None:
        request = RequestIP(
            ipv4=ipv4,
            ipv6=ipv6,
            lease_time=timedelta(seconds=lease_time) if lease_time else None,
        )

    try:
        lease = asyncio.run(
            client.request_ip(request, timeout=timeout or settings.timeout)
        )
    except (WgDynamicError, TimeoutError, OSError) as e:
        error_exit(str(e) or type(e).__name__)

    if json_output:
        output_json(lease.to_dict())
    else:
        print_lease(lease)


@cli.command()
@click.option("--host", default=None, help="Address to listen on (default: WGDYNAMIC_HOST or ::)")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Port to listen on")
@click.option("--ipv4-pool", callback=_network_option(4), help="IPv4 network to assign from")
@click.option("--ipv6-pool", callback=_network_option(6), help="IPv6 network to assign from")
@click.option("--lease-time", type=click.IntRange(min=1), default=3600, help="Lease length (seconds)")
def serve(
    host: str | None,
    port: int | None,
    ipv4_pool: IPv4Network | None,
    ipv6_pool: IPv6Network | None,
    lease_time: int,
) -> None:
    """Run a wg-dynamic server backed by an in-memory address pool.

    **Examples:**

        wgdynamic serve --host fe80::%wg0 --ipv4-pool 192.0.2.0/24

        wgdynamic serve --ipv4-pool 192.0.2.0/24 --ipv6-pool 2001:db8::/64
    """
    if ipv4_pool is None and ipv6_pool is None:
        raise click.UsageError("At least one of --ipv4-pool or --ipv6-pool is required")

    settings = _settings()
    pool = StaticPool(
        ipv4_network=ipv4_pool,  # type: ignore[arg-type]
        ipv6_network=ipv6_pool,  # type: ignore[arg-type]
        lease_time=timedelta(seconds=lease_time),
    )
    server = TCPSocketServer(
        Dispatcher({COMMAND_REQUEST_IP: pool}, max_message_size=settings.max_message_size),
        host=host or settings.host,
        port=port or settings.port,
    )

    async def run() -> None:
        async with server:
            click.echo(f"Listening on {server.address[0]} port {server.address[1]}")
            await server.serve_forever()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("Stopped")
    except OSError as e:
        error_exit(str(e))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
