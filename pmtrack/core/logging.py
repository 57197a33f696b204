"""Structured logging setup for PMTrack.

Core modules log snake_case event names with key/value context, e.g.
``logger.info("occurrence_materialized", schedule_id=..., sequence_index=...)``.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_configured = False


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        level: Log level name; falls back to LOG_LEVEL, then INFO
        json_logs: Render JSON lines; falls back to JSON_LOGS env flag
    """
    global _configured

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if json_logs is None:
        json_logs = os.getenv("JSON_LOGS", "false").lower() == "true"

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if _configured:
        logging.getLogger().setLevel(level.upper())
        return

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = Path("logs/pmtrack.log")
    if log_file.parent.exists():
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(format="%(message)s", handlers=handlers, level=level.upper())
    _configured = True


def bind_context(**values: Any) -> None:
    """Attach key/values to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
