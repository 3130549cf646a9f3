"""Logging configuration for the chat relay service."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from chat_relay.core.settings import settings

ROOT_LOGGER = "chat_relay"


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def configure_logging(level: str | None = None, fmt: str | None = None) -> logging.Logger:
    """Install a single stdout handler on the package logger and return it."""
    level_name = (level or settings.log_level).upper()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if (fmt or settings.log_format).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
