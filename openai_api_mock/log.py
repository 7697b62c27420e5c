"""Structured logging setup for the mock engine.

Request logging (``log_requests=True``) and dispatch-boundary failures are
emitted as structlog events. ``configure_logging()`` installs the processor
chain used across the project; it is applied automatically the first time a
session with request logging starts, unless the host application has
already configured structlog itself.
"""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO", *, json: bool = False) -> None:
    """Configure structlog with the project's processor chain.

    Args:
        level: Minimum level name (``DEBUG``, ``INFO``, ...).
        json: Render JSON lines instead of the colored console format.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if json
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def ensure_logging(level: str = "INFO") -> None:
    """Configure structlog only if nobody has done so yet."""
    if not structlog.is_configured():
        configure_logging(level)
