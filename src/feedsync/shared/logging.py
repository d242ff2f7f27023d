"""
Structured logging system for feedsync.

This module provides helpers that record structured log entries including
error context, so synchronization failures can be traced per operation.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from feedsync.shared.errors import ErrorContext, FeedSyncError


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders log records as JSON lines.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as JSON.

        Args:
            record: Log record

        Returns:
            JSON encoded log line
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "error_code"):
            log_entry["error_code"] = record.error_code

        if hasattr(record, "context"):
            log_entry["context"] = record.context

        if hasattr(record, "operation"):
            log_entry["operation"] = record.operation

        if hasattr(record, "duration_ms"):
            log_entry["duration_ms"] = record.duration_ms

        if hasattr(record, "result_info"):
            log_entry["result_info"] = record.result_info

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def _create_rich_console() -> Console:
    """
    Create the rich Console used for log output.

    Returns:
        Configured rich Console
    """
    custom_theme = Theme(
        {
            "logging.level.debug": "cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "red bold reverse",
            "log.time": "dim cyan",
            "log.message": "white",
            "log.path": "dim blue",
        }
    )
    return Console(theme=custom_theme, stderr=True)


def setup_structured_logger(
    name: str = "feedsync",
    level: str = "INFO",
    log_file: str | None = None,
    *,
    use_rich_console: bool = True,
) -> logging.Logger:
    """
    Configure a logger for structured output.

    Args:
        name: Logger name (default: "feedsync")
        level: Log level (default: "INFO")
        log_file: Optional log file path (always JSON)
        use_rich_console: Use rich console output instead of JSON lines

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        logger.handlers.clear()

    log_level = getattr(logging, level.upper())
    logger.setLevel(log_level)

    if use_rich_console:
        console = _create_rich_console()
        handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=True,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format="[%H:%M:%S]",
        )
        handler.setLevel(log_level)
        logger.addHandler(handler)
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def _context_to_dict(context: dict[str, Any] | ErrorContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    if isinstance(context, ErrorContext):
        return context.safe_dict()
    if hasattr(context, "model_dump"):
        return context.model_dump(exclude_none=True)
    return dict(context)


def log_operation_error(
    logger: logging.Logger,
    error: FeedSyncError,
    operation: str | None = None,
    context: (dict[str, Any] | ErrorContext) | None = None,
    additional_context: (dict[str, Any] | ErrorContext) | None = None,
) -> None:
    """
    Record a structured error log entry for a FeedSyncError.

    Args:
        logger: Logger instance
        error: The error to record
        operation: Operation name (optional)
        context: Extra context (optional)
        additional_context: More context merged last (optional)
    """
    context_dict: dict[str, Any] = {}

    if error.context:
        context_dict.update(error.context.safe_dict())

    context_dict.update(_context_to_dict(context))
    context_dict.update(_context_to_dict(additional_context))

    logger.error(
        error.message,
        extra={
            "error_code": error.code.name,
            "context": context_dict,
            "operation": operation or error.context.operation,
        },
        exc_info=error.original_error,
    )


def log_operation_success(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    result_info: dict[str, Any] | None = None,
    context: (dict[str, Any] | ErrorContext) | None = None,
) -> None:
    """
    Record a debug entry for a successful operation.

    Args:
        logger: Logger instance
        operation: Operation name
        duration_ms: Elapsed time in milliseconds
        result_info: Result details (optional)
        context: Context details (optional)
    """
    logger.debug(
        "Operation '%s' completed successfully",
        operation,
        extra={
            "operation": operation,
            "duration_ms": duration_ms,
            "result_info": result_info or {},
            "context": _context_to_dict(context),
        },
    )


def log_operation_start(
    logger: logging.Logger,
    operation: str,
    context: dict[str, Any] | None = None,
) -> None:
    """
    Record the start of an operation.

    Args:
        logger: Logger instance
        operation: Operation name
        context: Context details (optional)
    """
    logger.debug(
        "Starting operation '%s'",
        operation,
        extra={
            "operation": operation,
            "context": context or {},
        },
    )


def log_validation_error(
    logger: logging.Logger,
    field: str,
    value: Any,
    reason: str,
    context: dict[str, Any] | None = None,
) -> None:
    """
    Record a validation failure.

    Args:
        logger: Logger instance
        field: Field that failed validation
        value: Offending value
        reason: Failure reason
        context: Context details (optional)
    """
    validation_context = {
        "field": field,
        "value": str(value),
        "reason": reason,
    }

    if context:
        validation_context.update(context)

    logger.warning(
        "Validation failed for field '%s': %s",
        field,
        reason,
        extra={
            "error_code": "VALIDATION_ERROR",
            "context": validation_context,
            "operation": "validation",
        },
    )
