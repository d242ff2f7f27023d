"""
CLI Error Handling Utilities

Consistent error output for every command: a one-line ``Error:`` message on
stderr, or the JSON envelope on stdout when ``--json`` is active.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from feedsync.shared.constants import CLIDefaults
from feedsync.shared.errors import (
    ApplicationError,
    CliError,
    DomainError,
    InfrastructureError,
    create_cli_error,
    create_cli_output_error,
)

logger = logging.getLogger(__name__)


def handle_cli_error(
    error: Exception,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Handle CLI errors with consistent formatting and logging.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format

    Returns:
        Exit code for the CLI command
    """
    error_context = _create_error_context(error, command, json_output=json_output)
    cli_error = _map_error_to_cli_error(error, command, error_context)
    _log_error(error, command, cli_error, error_context)
    _output_error(cli_error, error, command, error_context, json_output=json_output)

    return cli_error.exit_code


def _create_error_context(
    error: Exception,
    command: str,
    *,
    json_output: bool,
) -> dict[str, Any]:
    return {
        "command": command,
        "error_type": type(error).__name__,
        "json_output": json_output,
    }


def _map_error_to_cli_error(
    error: Exception,
    command: str,
    error_context: dict[str, Any],
) -> CliError:
    """Map specific exception types to CLI errors."""
    if isinstance(error, CliError):
        error_context["error_code"] = error.code.value
        return error

    if isinstance(error, DomainError):
        error_context["error_code"] = error.code.value
        return create_cli_error(
            message=f"Invalid input: {error.message}",
            command=command,
            original_error=error,
        )

    if isinstance(error, ApplicationError):
        error_context["error_code"] = error.code.value
        return create_cli_error(
            message=f"Application error: {error.message}",
            command=command,
            original_error=error,
        )

    if isinstance(error, InfrastructureError):
        error_context["error_code"] = error.code.value
        return create_cli_error(
            message=f"Infrastructure error: {error.message}",
            command=command,
            original_error=error,
        )

    if isinstance(error, OSError):
        error_context["error_category"] = "file_system"
        return create_cli_error(
            message=f"File system error: {error}",
            command=command,
            original_error=error,
        )

    if isinstance(error, (ValueError, KeyError, TypeError, AttributeError)):
        error_context["error_category"] = "data_processing"
        return create_cli_error(
            message=f"Data processing error: {error}",
            command=command,
            original_error=error,
        )

    if isinstance(error, KeyboardInterrupt):
        error_context["interrupt_type"] = "user_interrupt"
        return create_cli_error(
            message="Command interrupted by user",
            command=command,
            original_error=error,
            exit_code=CLIDefaults.EXIT_INTERRUPTED,
        )

    error_context["error_category"] = "unexpected"
    return create_cli_error(
        message=f"Unexpected error: {error}",
        command=command,
        original_error=error,
    )


def _log_error(
    error: Exception,
    command: str,
    cli_error: CliError,
    error_context: dict[str, Any],
) -> None:
    if isinstance(error, KeyboardInterrupt):
        logger.warning(
            "Command interrupted: %s",
            cli_error.message,
            extra={"context": error_context},
        )
    elif isinstance(error, DomainError):
        # Rejected input is expected, no traceback
        logger.warning(
            "CLI command %s rejected input: %s",
            command,
            cli_error.message,
            extra={"context": error_context},
        )
    else:
        logger.error(
            "CLI error in %s: %s",
            command,
            cli_error.message,
            exc_info=error,
            extra={"context": error_context},
        )


def _output_error(
    cli_error: CliError,
    error: Exception,
    command: str,
    error_context: dict[str, Any],
    *,
    json_output: bool,
) -> None:
    if json_output:
        _output_json_error(cli_error, error, command, error_context)
    else:
        sys.stderr.write(f"Error: {cli_error.message}\n")


def _output_json_error(
    cli_error: CliError,
    error: Exception,
    command: str,
    error_context: dict[str, Any],
) -> None:
    from feedsync.cli.json_formatter import format_error_output

    try:
        error_output = format_error_output(
            command,
            [cli_error.message],
            data={
                "error_code": cli_error.code.value,
                "error_type": type(error).__name__,
                "exit_code": cli_error.exit_code,
                "context": error_context,
            },
        )
        sys.stdout.buffer.write(error_output)
        sys.stdout.buffer.write(b"\n")
        sys.stdout.buffer.flush()
    except (OSError, UnicodeEncodeError) as output_error:
        cli_output_error = create_cli_output_error(
            message=f"Failed to format JSON output: {output_error}",
            command=command,
            output_type="json",
            original_error=output_error,
        )
        logger.exception(
            "JSON output error: %s",
            cli_output_error.message,
            extra={"context": error_context},
        )
        sys.stderr.write(f"Error: {cli_error.message}\n")
        sys.stderr.write(f"JSON output failed: {cli_output_error.message}\n")
