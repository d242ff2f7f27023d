"""
CLI Context Management Module

This module keeps the global CLI state in a Pydantic model stored in a
ContextVar, so every Typer command reads the same parsed options.

The context includes:
- verbose: Verbosity level (int, count-based)
- log_level: Logging level (str, enum-based)
- json_output: JSON output mode (bool)
- config_file: Optional TOML configuration path
"""

from __future__ import annotations

import contextvars
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CliContext(BaseModel):
    """
    CLI context model for managing global state.

    Attributes:
        verbose: Verbosity level (0 = normal, 1+ = verbose)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to output in JSON format
        config_file: TOML file to load settings from, if any
    """

    verbose: int = Field(
        default=0,
        ge=0,
        description="Verbosity level (0 = normal, 1+ = verbose)",
    )

    log_level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Logging level",
    )

    json_output: bool = Field(
        default=False,
        description="Whether to output in JSON format",
    )

    config_file: Path | None = Field(
        default=None,
        description="Configuration file passed with --config",
    )

    def is_verbose(self) -> bool:
        """Check if verbose mode is enabled."""
        return self.verbose > 0

    def get_effective_log_level(self) -> str:
        """
        Get the effective log level after applying verbose override.

        If verbose is enabled, force log level to DEBUG.

        Returns:
            str: Effective log level
        """
        if self.is_verbose():
            return LogLevel.DEBUG.value
        return self.log_level.value

    def is_json_output_enabled(self) -> bool:
        """Check if JSON output is enabled."""
        return self.json_output


# Global context variable
cli_context_var: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "cli_context",
    default=None,
)


def get_cli_context() -> CliContext:
    """
    Get the current CLI context.

    Returns:
        CliContext: Current CLI context

    Raises:
        RuntimeError: If context has not been initialized
    """
    context = cli_context_var.get()
    if context is None:
        raise RuntimeError(
            "CLI context has not been initialized. "
            "Make sure to call the main callback before accessing context.",
        )
    return context


def set_cli_context(context: CliContext) -> None:
    """Set the current CLI context."""
    cli_context_var.set(context)


def clear_cli_context() -> None:
    """Clear the current CLI context."""
    cli_context_var.set(None)
