"""
Structured logging setup.

Modules grab a logger with ``get_logger(__name__)`` and emit snake_case
events with keyword context. Authentication failures carry the error ``code``
so they can be filtered by taxonomy entry.
"""
from __future__ import annotations

import logging

import structlog

from siwe_auth.core.errors import SiweAuthError


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None):
    return structlog.get_logger(name)


def short_nonce(nonce: str | None) -> str | None:
    if not nonce:
        return nonce
    return nonce[:8] + "..."


def log_auth_failure(logger, error: SiweAuthError, **context) -> None:
    """Emit the single failure event for a rejected verification."""
    log = logger.error if error.retryable else logger.warning
    log("siwe_verification_failed", code=error.code, reason=error.message, **context)
