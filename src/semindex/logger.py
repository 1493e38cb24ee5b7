"""Structured logging configuration for the semantic index."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LOGGER_NAME = "semindex"


def configure(level: str = "INFO", json_out: bool = True) -> structlog.BoundLogger:
    """Configure structlog for the application and return a bound logger.

    Unknown level names raise ``ValueError`` instead of silently logging at INFO.
    """
    numeric_level = resolve_level(level)
    logging.basicConfig(level=numeric_level, stream=sys.stderr, force=True)
    renderer: Any = structlog.processors.JSONRenderer() if json_out else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
    return get_logger("app")


def get_logger(component: str) -> Any:
    """Return the package logger bound to ``component``."""
    return structlog.get_logger(LOGGER_NAME).bind(component=component)


def resolve_level(level: str) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        message = f"unknown log level: {level}"
        raise ValueError(message)
    return resolved
