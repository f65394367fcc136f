"""Structured logging setup."""

from __future__ import annotations

import logging
import os

import structlog

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def get_log_format() -> str:
    """Get log format (``pretty`` or ``json``) from the environment."""
    return os.getenv("NOTESTORE_LOG_FORMAT", "pretty").lower()


def configure_logging(verbosity: int = 0, fmt: str | None = None) -> None:
    """Route structlog and stdlib logging through one stderr handler.

    *verbosity* 0 shows warnings, 1 adds info, 2 or more adds debug.
    """
    fmt = (fmt or get_log_format()).lower()
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    logging.root.handlers = []
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(_LEVELS.get(verbosity, logging.DEBUG))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("dulwich").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
