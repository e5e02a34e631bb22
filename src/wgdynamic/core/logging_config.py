"""Logging configuration for wgdynamic.

Library modules only create loggers (``logging.getLogger(__name__)``); the
CLI, or an embedding application, calls configure_logging() once.

Usage:
    from wgdynamic.core.logging_config import configure_logging

    configure_logging(level="DEBUG")

Environment Variables:
    WGDYNAMIC_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    WGDYNAMIC_LOG_FORMAT: Output format ("text" or "json")
    WGDYNAMIC_LOG_FILE: Optional log file path
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

TEXT_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Logger that all package loggers hang off.
PACKAGE_LOGGER = "wgdynamic"

# Attributes present on every LogRecord; anything else came in via extra=.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


@dataclass
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Log level name.
        format: Output format ("text" or "json").
        file_path: Optional file to log to in addition to stderr.
    """

    level: str = "INFO"
    format: Literal["text", "json"] = "text"
    file_path: str | None = None

    @classmethod
    def from_env(cls) -> LogConfig:
        """Build a config from WGDYNAMIC_LOG_* variables."""
        fmt = os.environ.get("WGDYNAMIC_LOG_FORMAT", "text")
        return cls(
            level=os.environ.get("WGDYNAMIC_LOG_LEVEL", "INFO"),
            format="json" if fmt == "json" else "text",
            file_path=os.environ.get("WGDYNAMIC_LOG_FILE"),
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    {"timestamp": "...", "level": "WARNING", "logger": "wgdynamic.server.dispatcher",
     "message": "...", "extra": {"peer": "fe80::1"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def configure_logging(
    level: str | None = None,
    format: Literal["text", "json"] | None = None,
    file_path: str | None = None,
    force: bool = False,
) -> logging.Logger:
    """Attach handlers to the package logger.

    Arguments override the environment; unset arguments fall back to
    LogConfig.from_env(). Calling again is a no-op unless force=True.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if logger.handlers and not force:
        return logger

    env = LogConfig.from_env()
    config = LogConfig(
        level=level or env.level,
        format=format or env.format,
        file_path=file_path or env.file_path,
    )

    numeric_level = logging.getLevelName(config.level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {config.level}")
    logger.setLevel(numeric_level)

    formatter: logging.Formatter
    if config.format == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.file_path:
        file_handler = logging.FileHandler(config.file_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
