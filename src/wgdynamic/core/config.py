"""Runtime settings.

Defaults come from the protocol's well-known values and can be overridden
through the environment, then by CLI options:

    WGDYNAMIC_HOST              Listen/bind host for the server
    WGDYNAMIC_PORT              TCP port (default 970)
    WGDYNAMIC_TIMEOUT           Client request timeout in seconds
    WGDYNAMIC_MAX_MESSAGE_SIZE  Maximum accepted message size in bytes
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from wgdynamic.core.command import MAX_MESSAGE_SIZE
from wgdynamic.core.types import PORT

MIN_PORT = 1
MAX_PORT = 65535
DEFAULT_TIMEOUT = 5.0


class ConfigError(ValueError):
    """Invalid configuration value."""


def _parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ConfigError(f"port must be an integer, got: {value!r}") from None
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigError(f"port must be between {MIN_PORT} and {MAX_PORT}, got: {port}")
    return port


def _parse_positive_float(name: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got: {value!r}") from None
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got: {number}")
    return number


@dataclass(frozen=True)
class Settings:
    """Client and server settings.

    Attributes:
        host: Address the server listens on.
        port: TCP port used by both ends.
        timeout: Default client request timeout in seconds.
        max_message_size: Largest message accepted by either end.
    """

    host: str = "::"
    port: int = PORT
    timeout: float = DEFAULT_TIMEOUT
    max_message_size: int = MAX_MESSAGE_SIZE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from WGDYNAMIC_* environment variables.

        Raises:
            ConfigError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        host = env.get("WGDYNAMIC_HOST", defaults.host)
        port = defaults.port
        if "WGDYNAMIC_PORT" in env:
            port = _parse_port(env["WGDYNAMIC_PORT"])
        timeout = defaults.timeout
        if "WGDYNAMIC_TIMEOUT" in env:
            timeout = _parse_positive_float("timeout", env["WGDYNAMIC_TIMEOUT"])
        max_message_size = defaults.max_message_size
        if "WGDYNAMIC_MAX_MESSAGE_SIZE" in env:
            max_message_size = int(
                _parse_positive_float("max message size", env["WGDYNAMIC_MAX_MESSAGE_SIZE"])
            )

        return cls(host=host, port=port, timeout=timeout, max_message_size=max_message_size)
