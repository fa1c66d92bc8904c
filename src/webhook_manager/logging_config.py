"""Logging configuration for single-line key=value structured logging."""
from __future__ import annotations

import logging
import sys

import structlog


def _sanitize_string(value: str) -> str:
    """Escape control characters so the log entry stays on a single line."""
    return (
        value.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def replace_newlines_processor(logger, method_name, event_dict):
    """
    Processor to replace newlines in string values with \\n.
    Runs after format_exc_info so formatted tracebacks are flattened too.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _sanitize_string(value)
        elif isinstance(value, (list, tuple)):
            event_dict[key] = [
                _sanitize_string(item) if isinstance(item, str) else item
                for item in value
            ]
        elif isinstance(value, dict):
            event_dict[key] = {
                k: _sanitize_string(v) if isinstance(v, str) else v
                for k, v in value.items()
            }
    return event_dict


class SingleLineFormatter(logging.Formatter):
    """Formatter that ensures output is always on a single line."""

    def format(self, record):
        message = super().format(record)
        # Catch newlines introduced outside structlog processors
        return message.replace("\n", "\\n").replace("\r", "\\r")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog for key=value output on stdout."""
    # Route standard logging (aiohttp included) through one single-line handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(SingleLineFormatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    root_logger.propagate = False

    # Configure aiohttp logger to use structlog
    aiohttp_logger = logging.getLogger("aiohttp.access")
    aiohttp_logger.setLevel(level)
    aiohttp_logger.propagate = True  # Let it go through root logger to structlog
    aiohttp_logger.handlers = []  # Remove default handlers

    # key=value output, e.g.
    # timestamp=2024-01-01T12:00:00Z level=info logger=webhook_manager.services.probe event='webhook probe completed' webhook_id=... trace_id=...
    structlog.configure(
        processors=[
            # Merge context variables (trace_id, request_id, etc.)
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            # Format exceptions (adds exception field with traceback)
            structlog.processors.format_exc_info,
            # Must stay after format_exc_info and before the renderer
            replace_newlines_processor,
            # Values with spaces are quoted by the renderer
            structlog.processors.KeyValueRenderer(
                key_order=["timestamp", "level", "logger", "event", "message"],
                drop_missing=True,
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
