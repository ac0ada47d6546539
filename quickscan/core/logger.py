"""Structured logging using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import Processor


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output logs in JSON format
        log_file: Optional file path for logging output
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors: list[Processor] = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    # Logs go to stderr; stdout carries report output
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: Optional[str] = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a bound logger with optional initial context.

    Args:
        name: Logger name (optional)
        **initial_context: Initial context key-value pairs to bind

    Returns:
        A structlog bound logger instance
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def log_provider_start(provider: str, target: str, **context: Any) -> None:
    """Log the start of a provider assessment."""
    logger = get_logger("providers")
    logger.debug(f"Starting {provider}", provider=provider, target=target, action="start", **context)


def log_provider_complete(
    provider: str,
    success: bool,
    duration: float,
    **context: Any,
) -> None:
    """Log the completion of a provider assessment."""
    logger = get_logger("providers")
    level = "info" if success else "warning"
    getattr(logger, level)(
        f"{provider} {'completed' if success else 'failed'}",
        provider=provider,
        action="complete",
        success=success,
        duration_seconds=round(duration, 2),
        **context,
    )


def log_finding(
    title: str,
    severity: str,
    target: str,
    **details: Any,
) -> None:
    """Log a security finding."""
    logger = get_logger("findings")
    logger.debug(
        f"[{severity.upper()}] {title} on {target}",
        severity=severity,
        target=target,
        **details,
    )
