"""feedsync Error Handling Module

This module defines the error handling system for feedsync, providing
structured error classes with context information and user-friendly messages.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- User-friendly Messages: Errors can be converted to user-friendly messages
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict for PII protection
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("user_id",)


class ErrorCode(str, Enum):
    """Error codes for the feedsync client.

    This enum serves as the single source of truth for all error codes
    used throughout the application.
    """

    # Network and Remote Store Errors
    NETWORK_ERROR = "NETWORK_ERROR"
    REMOTE_REQUEST_FAILED = "REMOTE_REQUEST_FAILED"
    REMOTE_CONSTRAINT_VIOLATION = "REMOTE_CONSTRAINT_VIOLATION"
    REMOTE_NOT_FOUND = "REMOTE_NOT_FOUND"
    REMOTE_UNKNOWN_PROCEDURE = "REMOTE_UNKNOWN_PROCEDURE"
    REMOTE_UNKNOWN_TABLE = "REMOTE_UNKNOWN_TABLE"

    # Synchronization Errors
    QUERY_FAILED = "QUERY_FAILED"
    MUTATION_FAILED = "MUTATION_FAILED"
    INVALID_QUERY_KEY = "INVALID_QUERY_KEY"
    SUBSCRIPTION_ERROR = "SUBSCRIPTION_ERROR"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_USERNAME = "INVALID_USERNAME"
    USERNAME_TAKEN = "USERNAME_TAKEN"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_EMAIL_DOMAIN = "INVALID_EMAIL_DOMAIN"
    CONTENT_TOO_LONG = "CONTENT_TOO_LONG"
    EMPTY_CONTENT = "EMPTY_CONTENT"
    SELF_FOLLOW = "SELF_FOLLOW"
    SELF_CHAT = "SELF_CHAT"
    INVALID_RADIUS = "INVALID_RADIUS"
    INVALID_FEED_FILTER = "INVALID_FEED_FILTER"

    # Configuration Errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MISSING_CONFIG = "MISSING_CONFIG"

    # CLI Errors
    CLI_COMMAND_FAILED = "CLI_COMMAND_FAILED"
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"
    CLI_OUTPUT_ERROR = "CLI_OUTPUT_ERROR"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        elif val is None:
            continue
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContextModel:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to ensure safe serialization and prevent sensitive
    data leakage.

    Attributes:
        operation: Optional operation name that caused the error
        user_id: Optional user ID (masked in logs)
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    user_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with PII masking.

        Args:
            mask_keys: Fields to exclude from output. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with masked sensitive fields and guaranteed additional_data key.

        Example:
            >>> context = ErrorContextModel(user_id="12345", operation="vote_post")
            >>> context.safe_dict()
            {'operation': 'vote_post', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None and "operation" not in mask_keys:
            data["operation"] = self.operation
        if self.user_id is not None and "user_id" not in mask_keys:
            data["user_id"] = self.user_id

        if self.additional_data is not None and "additional_data" not in mask_keys:
            data["additional_data"] = self.additional_data
        else:
            data["additional_data"] = {}

        return data


ErrorContext = ErrorContextModel


class FeedSyncError(Exception):
    """Base exception class for all feedsync errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize FeedSyncError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error

        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging with PII masking.

        Returns:
            Dictionary representation of the error with code, message,
            masked context, and original_error (if present)
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(FeedSyncError):
    """Domain-specific errors.

    These errors occur when business rules are violated. They are
    detected client-side before any remote write is attempted.

    Examples:
    - Invalid username format
    - Following yourself
    - Sending an empty message
    """


class InfrastructureError(FeedSyncError):
    """Infrastructure-related errors.

    These errors occur when interacting with external systems like the
    remote data store or the realtime channel.
    """


class RemoteStoreError(InfrastructureError):
    """Error reported by the remote data store.

    ``remote_code`` carries the store's own error code (for example the
    Postgres ``23505`` unique violation or PostgREST ``PGRST116`` for
    "no rows"), so callers can branch on it without parsing messages.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        remote_code: str | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.remote_code = remote_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["remote_code"] = self.remote_code
        return data


class QueryError(InfrastructureError):
    """A cached query exhausted its retries without producing data."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        key: tuple[Any, ...] | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.key = key


class ApplicationError(FeedSyncError):
    """Application-level errors.

    These errors occur at the application layer, typically related to
    configuration, command handling, or application flow.
    """


class CliError(ApplicationError):
    """CLI-specific error with enhanced context for command-line operations."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        command: str | None = None,
        exit_code: int = 1,
    ):
        super().__init__(code, message, context, original_error)
        self.command = command
        self.exit_code = exit_code


# Convenience functions for common error scenarios
def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
    code: ErrorCode = ErrorCode.VALIDATION_ERROR,
) -> DomainError:
    """Create a validation error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"field": field} if field else None
    )
    context = ErrorContext(operation=operation, additional_data=additional_data)
    return DomainError(code, message, context)


def create_remote_error(
    message: str,
    operation: str | None = None,
    remote_code: str | None = None,
    table: str | None = None,
    original_error: Exception | None = None,
    code: ErrorCode = ErrorCode.REMOTE_REQUEST_FAILED,
) -> RemoteStoreError:
    """Create a remote store error with context."""
    additional_data: dict[str, PrimitiveContextValue] = {}
    if table is not None:
        additional_data["table"] = table
    if remote_code is not None:
        additional_data["remote_code"] = remote_code

    context = ErrorContext(
        operation=operation,
        additional_data=additional_data or None,
    )
    return RemoteStoreError(
        code,
        message,
        context,
        original_error,
        remote_code=remote_code,
    )


def create_config_error(
    message: str,
    config_key: str | None = None,
    original_error: Exception | None = None,
) -> ApplicationError:
    """Create a configuration error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(
        operation="load_config",
        additional_data=additional_data,
    )
    return ApplicationError(
        ErrorCode.CONFIGURATION_ERROR,
        message,
        context,
        original_error,
    )


def create_cli_error(
    message: str,
    command: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
    exit_code: int = 1,
) -> CliError:
    """Create a CLI error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"command": command} if command else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return CliError(
        ErrorCode.CLI_UNEXPECTED_ERROR,
        message,
        context,
        original_error,
        command,
        exit_code,
    )


def create_cli_output_error(
    message: str,
    command: str | None = None,
    output_type: str | None = None,
    original_error: Exception | None = None,
) -> CliError:
    """Create a CLI output error with context."""
    additional_data: dict[str, PrimitiveContextValue] = {}
    if command is not None:
        additional_data["command"] = command
    if output_type is not None:
        additional_data["output_type"] = output_type

    context = ErrorContext(
        operation="cli_output",
        additional_data=additional_data if additional_data else None,
    )
    return CliError(
        ErrorCode.CLI_OUTPUT_ERROR,
        message,
        context,
        original_error,
        command,
        exit_code=1,
    )
