"""Structured logging for Pipewright.

This module provides structured logging using structlog, enabling:
- JSON-formatted logs for CI systems (machine-readable)
- Pretty console logs for local runs (human-readable)
- Automatic context binding (run_id, stage_id)
- Masking of every secret value that is live in a SecretScope

Usage:
    from pipewright.logging import configure_logging, get_logger

    # Configure once at application startup
    configure_logging(json_format=True)

    logger = get_logger("my.module")
    logger.info("stage_started", run_id="01H...", stage_id="compile")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from pipewright.redaction import get_redactor

_configured = False


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor masking live secret values in every event field."""
    redactor = get_redactor()
    if not redactor.active():
        return event_dict
    return {key: redactor.redact_value(value) for key, value in event_dict.items()}


def configure_logging(
    json_format: bool = False,
    level: int = logging.INFO,
    logger_factory: Any = None,
) -> None:
    """Configure structured logging for Pipewright.

    Call this once at application startup before any logging occurs.

    Args:
        json_format: If True, output JSON logs (for CI log collectors).
                    If False, output pretty console logs.
        level: Minimum log level (default: INFO)
        logger_factory: Custom logger factory (for testing)
    """
    global _configured

    # Configure stdlib logging (structlog wraps it)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory or structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str) -> Any:
    """Get a structured logger for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        A bound logger that supports structured logging.
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent logs of this thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def run_logger(run_id: str) -> Any:
    """Get a logger pre-bound with run context."""
    return get_logger("pipewright.run").bind(run_id=run_id)


def stage_logger(run_id: str, stage_id: str) -> Any:
    """Get a logger pre-bound with run and stage context."""
    return get_logger("pipewright.stage").bind(run_id=run_id, stage_id=stage_id)
