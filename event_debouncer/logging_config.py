"""Structlog configuration helpers for structured logging."""

from __future__ import annotations

import logging

import structlog

from .config import get_settings


def configure_logging(level: int | str | None = None) -> None:
    """Configure structlog to emit JSON-formatted logs.

    The level defaults to ``DEBOUNCER_LOG_LEVEL`` from the runtime settings.
    """

    if level is None:
        level = get_settings().log_level

    timestamper = structlog.processors.TimeStamper(fmt="iso")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level)
