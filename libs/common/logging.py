"""Structured logging configuration for search platform services.

Logging is standardized on ``structlog``. Output is either JSON (for
machines) or a pretty console format (for humans), and every line carries the
bound service name so logs stay useful once aggregated.

Typical usage
- Call ``configure_logging(service_name, log_level, log_format)`` at startup
- Acquire loggers via ``structlog.get_logger(name)`` or ``get_logger(name)``
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    **kwargs: Any
) -> None:
    """Configure structured logging for a service.

    Parameters
    - service_name: Logical service identifier bound to each log line
    - log_level: ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR`` (case-insensitive)
    - log_format: ``json`` for production; ``console`` for local dev
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log how long a unit of work took.

    Parameters
    - operation: A stable identifier for the measured unit of work
    - duration_ms: Elapsed time in milliseconds
    - kwargs: Additional dimensions (e.g., mode, result count)
    """
    logger = get_logger("performance")
    logger.info(
        f"Operation {operation} completed",
        operation=operation,
        duration_ms=duration_ms,
        **kwargs
    )
