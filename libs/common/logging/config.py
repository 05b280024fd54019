"""Centralized logging configuration for the checkpoint tooling.

All entry points should call configure_logging() once at startup so every
module-level logger shares the same JSON output and invocation ID.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="git_checkpoint", log_level="DEBUG")
    >>> logger.info("Checkpoint created", extra={"context": {"file_count": 2}})
"""

import logging
import sys
from typing import Optional, TextIO

from libs.common.logging.context import get_invocation_id
from libs.common.logging.formatter import JSONFormatter


class InvocationIDFilter(logging.Filter):
    """Logging filter that adds the current invocation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.invocation_id = get_invocation_id()
        return True


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Sets up a single handler with JSON formatted output, invocation ID
    injection and the requested level. Existing root handlers are removed
    so repeated calls (e.g. from tests) do not duplicate output.

    Args:
        service_name: Name reported in the ``service`` field
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include context dict in output
        stream: Output stream, defaults to stderr so stdout stays free for
            command output

    Returns:
        Configured root logger instance

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        JSONFormatter(
            service_name=service_name,
            include_context=include_context,
        )
    )
    handler.addFilter(InvocationIDFilter())

    root_logger.addHandler(handler)

    return root_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context_fields: object,
) -> None:
    """Log a message with additional context fields.

    Context fields appear in the "context" dict of the JSON output.

    Example:
        >>> log_with_context(get_logger(__name__), "INFO", "Restored", name="x.tar.gz")
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra={"context": context_fields})
