"""Structured logging configuration."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging for the application."""

    level = getattr(logging, log_level.upper())

    # Standard library logging carries third-party output (requests, urllib3)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Context bound per dispatch is merged first so every event carries it
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_generation_context(**values: Any) -> None:
    """Bind per-dispatch identifiers into every log line of the current task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_generation_context(*keys: str) -> None:
    """Drop identifiers bound by `bind_generation_context` once a dispatch ends.

    Only the named keys are removed, so context bound by the caller survives.
    """
    structlog.contextvars.unbind_contextvars(*keys)
