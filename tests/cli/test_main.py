"""Tests for the wgdynamic CLI."""

from __future__ import annotations

import importlib
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from ipaddress import ip_interface
from typing import Any

import pytest
from click.testing import CliRunner

from wgdynamic.core.errors import NoLinkLocalAddressError, ProtocolError
from wgdynamic.core.logging_config import PACKAGE_LOGGER
from wgdynamic.core.types import RequestIP, unix_time
from wgdynamic.frontends.cli.main import cli, parse_host_port

# The package re-exports the main() entry point under the same name.
cli_main = importlib.import_module("wgdynamic.frontends.cli.main")


@pytest.fixture(autouse=True)
def reset_package_logger():
    """configure_logging() binds to the runner's stderr; drop those handlers."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def runner():
    return CliRunner()


@dataclass
class FakeClient:
    """Stands in for TCPSocketClient; answers with FAKE_RESULT[0]."""

    remote_addr: tuple[str, int]
    local_addr: tuple[str, int] | None = None

    @classmethod
    def for_interface(cls, iface: str, port: int = 970) -> FakeClient:
        return cls(remote_addr=(f"fe80::%{iface}", port), local_addr=(f"fe80::1%{iface}", port))

    async def request_ip(self, request=None, *, cancellation=None, timeout=None):
        FAKE_CALLS.append({"client": self, "request": request, "timeout": timeout})
        if isinstance(FAKE_RESULT[0], Exception):
            raise FAKE_RESULT[0]
        return FAKE_RESULT[0]


FAKE_CALLS: list[dict[str, Any]] = []
FAKE_RESULT: list[Any] = [None]


@pytest.fixture
def fake_client(monkeypatch):
    """Replace the client class used by the CLI."""
    FAKE_CALLS.clear()
    FAKE_RESULT[0] = RequestIP(
        ipv4=ip_interface("192.0.2.1/32"),
        ipv6=ip_interface("2001:db8::1/128"),
        lease_start=unix_time(1),
        lease_time=timedelta(seconds=10),
    )
    monkeypatch.setattr(cli_main, "TCPSocketClient", FakeClient)
    return FAKE_RESULT


class TestParseHostPort:
    """Tests for parse_host_port."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("127.0.0.1:970", ("127.0.0.1", 970)),
            ("[fe80::%wg0]:970", ("fe80::%wg0", 970)),
            ("[::1]:1970", ("::1", 1970)),
            ("localhost:1", ("localhost", 1)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_host_port(value) == expected

    @pytest.mark.parametrize("value", ["127.0.0.1", ":970", "host:", "host:port", "[::1]970"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_host_port(value)


class TestRequestIPCommand:
    """Tests for ``wgdynamic request-ip``."""

    def test_requires_iface_or_remote(self, runner):
        result = runner.invoke(cli, ["request-ip"])

        assert result.exit_code != 0
        assert "IFACE or --remote" in result.output

    def test_auto_assign_json(self, runner, fake_client):
        result = runner.invoke(cli, ["request-ip", "--remote", "127.0.0.1:970", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "ipv4": "192.0.2.1/32",
            "ipv6": "2001:db8::1/128",
            "lease_start": "1970-01-01T00:00:01+00:00",
            "lease_time": 10,
        }
        assert FAKE_CALLS[0]["request"] is None
        assert FAKE_CALLS[0]["client"].remote_addr == ("127.0.0.1", 970)

    def test_request_options(self, runner, fake_client):
        result = runner.invoke(
            cli,
            [
                "request-ip",
                "wg0",
                "--ipv4",
                "192.0.2.10/32",
                "--ipv6",
                "2001:db8::ffff/64",
                "--lease-time",
                "3600",
                "--timeout",
                "1.5",
            ],
        )

        assert result.exit_code == 0, result.output
        call = FAKE_CALLS[0]
        assert call["client"].remote_addr == ("fe80::%wg0", 970)
        assert call["timeout"] == 1.5
        assert call["request"] == RequestIP(
            ipv4=ip_interface("192.0.2.10/32"),
            ipv6=ip_interface("2001:db8::ffff/64"),
            lease_time=timedelta(hours=1),
        )

    def test_table_output(self, runner, fake_client):
        result = runner.invoke(cli, ["request-ip", "--remote", "[::1]:970"])

        assert result.exit_code == 0, result.output
        assert "192.0.2.1/32" in result.output
        assert "2001:db8::1/128" in result.output

    @pytest.mark.parametrize(
        "args",
        [
            ["--ipv4", "2001:db8::1/128"],
            ["--ipv6", "192.0.2.1/32"],
            ["--ipv4", "192.0.2.1"],
            ["--ipv4", "bogus"],
            ["--lease-time", "0"],
        ],
    )
    def test_invalid_options(self, runner, fake_client, args):
        result = runner.invoke(cli, ["request-ip", "--remote", "127.0.0.1:970", *args])

        assert result.exit_code == 2
        assert FAKE_CALLS == []

    def test_invalid_remote(self, runner, fake_client):
        result = runner.invoke(cli, ["request-ip", "--remote", "nowhere"])

        assert result.exit_code == 2

    def test_protocol_error(self, runner, fake_client):
        fake_client[0] = ProtocolError(1, "Out of IPs")

        result = runner.invoke(cli, ["request-ip", "--remote", "127.0.0.1:970"])

        assert result.exit_code == 1
        assert "Out of IPs" in result.output

    def test_timeout(self, runner, fake_client):
        fake_client[0] = TimeoutError()

        result = runner.invoke(cli, ["request-ip", "--remote", "127.0.0.1:970"])

        assert result.exit_code == 1
        assert "TimeoutError" in result.output

    def test_discovery_failure(self, runner, monkeypatch):
        def fail(iface, port=970):
            raise NoLinkLocalAddressError(f"no link-local IPv6 address for interface {iface!r}")

        monkeypatch.setattr(cli_main.TCPSocketClient, "for_interface", fail)

        result = runner.invoke(cli, ["request-ip", "wg0"])

        assert result.exit_code == 1
        assert "link-local" in result.output

    def test_bad_environment(self, runner, fake_client, monkeypatch):
        monkeypatch.setenv("WGDYNAMIC_PORT", "99999")

        result = runner.invoke(cli, ["request-ip", "--remote", "127.0.0.1:970"])

        assert result.exit_code == 1
        assert "port" in result.output


class TestServeCommand:
    """Tests for ``wgdynamic serve``."""

    def test_requires_a_pool(self, runner):
        result = runner.invoke(cli, ["serve"])

        assert result.exit_code != 0
        assert "pool" in result.output

    def test_pool_family_checked(self, runner):
        result = runner.invoke(cli, ["serve", "--ipv4-pool", "2001:db8::/64"])

        assert result.exit_code == 2

    def test_serve_options(self):
        param_names = [p.name for p in cli.commands["serve"].params]

        assert {"host", "port", "ipv4_pool", "ipv6_pool", "lease_time"} <= set(param_names)

    def test_bind_failure(self, runner, monkeypatch):
        class FailingServer:
            def __init__(self, *args, **kwargs):
                pass

            async def __aenter__(self):
                raise OSError("address already in use")

            async def __aexit__(self, *exc_info):
                return None

        monkeypatch.setattr(cli_main, "TCPSocketServer", FailingServer)

        result = runner.invoke(cli, ["serve", "--ipv4-pool", "192.0.2.0/24"])

        assert result.exit_code == 1
        assert "address already in use" in result.output


class TestLogLevel:
    """Tests for the --log-level group option."""

    def test_unknown_level(self, runner):
        result = runner.invoke(cli, ["--log-level", "LOUD", "request-ip"])

        assert result.exit_code != 0
