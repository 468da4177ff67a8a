"""Centralised logging configuration for the Resellio API."""

from __future__ import annotations

import contextvars
import logging
from logging.config import dictConfig
from typing import Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Set per request by the trace-id middleware in resellio.main
trace_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)


class ChannelAliasFilter(logging.Filter):
    """Shorten resellio logger names to the service they belong to."""

    PREFIX = "resellio."
    NAME_MAP = {
        "resellio.core.services.product_grabber": "grabber",
        "resellio.core.services.meta_oauth_service": "meta.oauth",
        "resellio.core.services.meta_graph_service": "meta.graph",
        "resellio.core.services.calendar_service": "calendar",
        "resellio.core.services.kv_store": "store",
        "resellio.api_v1.relay": "relay",
    }

    def filter(self, record: logging.LogRecord) -> bool:
        channel = self.NAME_MAP.get(record.name)
        if channel is None and record.name.startswith(self.PREFIX):
            channel = record.name.rsplit(".", 1)[-1]
        record.channel = channel or record.name
        return True


class TraceIdFilter(logging.Filter):
    """Inject trace_id from context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        record.trace_id = trace_id_ctx.get() or "-"
        return True


def resolve_log_level(level: Optional[str]) -> str:
    candidate = (level or "").strip().upper()
    return candidate if candidate in LOG_LEVELS else "INFO"


def configure_logging(level: Optional[str] = None) -> None:
    """Route every log record through one console handler tagged with channel and trace id.

    Outbound HTTP client loggers stay at WARNING unless running at DEBUG.
    """
    level = resolve_log_level(level)
    client_level = "DEBUG" if level == "DEBUG" else "WARNING"

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "channel": {"()": "resellio.core.logging_config.ChannelAliasFilter"},
            "trace": {"()": "resellio.core.logging_config.TraceIdFilter"},
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)-8s | %(channel)-12s | [%(trace_id)s] | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "filters": ["channel", "trace"],
            },
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            "uvicorn": {"handlers": ["console"], "level": level, "propagate": False},
            "redis": {"level": "WARNING"},
            "httpx": {"level": client_level},
            "httpcore": {"level": client_level},
        },
    }

    dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured with level %s", level)
