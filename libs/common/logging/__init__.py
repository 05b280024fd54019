"""Structured logging library.

Provides structured JSON logging with a per-invocation ID so the log
lines of one CLI run can be correlated.

Usage:
    # At CLI startup
    from libs.common.logging import configure_logging, generate_invocation_id, set_invocation_id
    configure_logging(service_name="git_checkpoint", log_level="WARNING")
    set_invocation_id(generate_invocation_id())

    # In library modules
    logger = get_logger(__name__)
    log_with_context(logger, "INFO", "Checkpoint created", file_count=2)
"""

from libs.common.logging.config import (
    InvocationIDFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import (
    LogContext,
    clear_invocation_id,
    generate_invocation_id,
    get_invocation_id,
    get_or_create_invocation_id,
    set_invocation_id,
)
from libs.common.logging.formatter import JSONFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "get_logger",
    "log_with_context",
    "InvocationIDFilter",
    # Invocation ID management
    "generate_invocation_id",
    "get_invocation_id",
    "set_invocation_id",
    "clear_invocation_id",
    "get_or_create_invocation_id",
    "LogContext",
    # Formatter
    "JSONFormatter",
]
