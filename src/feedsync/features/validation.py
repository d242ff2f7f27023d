"""Client-side validation for usernames, profile fields and e-mail addresses.

Validators return a ``ValidationResult`` so callers can show the message
inline; ``raise_for_error`` turns a failed result into a ``DomainError``
before any remote write is attempted.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from feedsync.services.remote.filters import ilike, neq
from feedsync.services.remote.protocol import RemoteStore
from feedsync.shared.constants.query_keys import Tables
from feedsync.shared.constants.validation import EmailRules, ProfileRules, UsernameRules
from feedsync.shared.errors import ErrorCode, create_validation_error
from feedsync.shared.logging import log_validation_error

logger = logging.getLogger(__name__)


class ValidationResult(BaseModel):
    """Outcome of validating one field."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    error: str | None = None
    code: ErrorCode | None = None
    field: str | None = None

    @classmethod
    def ok(cls, field: str | None = None) -> ValidationResult:
        return cls(is_valid=True, field=field)

    @classmethod
    def fail(cls, error: str, code: ErrorCode, field: str | None = None) -> ValidationResult:
        return cls(is_valid=False, error=error, code=code, field=field)

    def raise_for_error(self, operation: str | None = None, value: object = None) -> None:
        """Raise a ``DomainError`` if validation failed."""
        if self.is_valid:
            return
        log_validation_error(
            logger,
            self.field or "value",
            value,
            self.error or "",
            {"operation": operation} if operation else None,
        )
        raise create_validation_error(
            self.error or "Invalid value",
            field=self.field,
            operation=operation,
            code=self.code or ErrorCode.VALIDATION_ERROR,
        )


def validate_username(username: str | None) -> ValidationResult:
    """Check length and allowed characters of a username."""
    field = "username"
    if not username:
        return ValidationResult.fail("Username is required", ErrorCode.MISSING_REQUIRED_FIELD, field)
    if len(username) < UsernameRules.MIN_LENGTH:
        return ValidationResult.fail(
            f"Username must be at least {UsernameRules.MIN_LENGTH} characters",
            ErrorCode.INVALID_USERNAME,
            field,
        )
    if len(username) > UsernameRules.MAX_LENGTH:
        return ValidationResult.fail(
            f"Username must be {UsernameRules.MAX_LENGTH} characters or less",
            ErrorCode.INVALID_USERNAME,
            field,
        )
    if not UsernameRules.PATTERN.match(username):
        return ValidationResult.fail(
            "Username can only contain letters, numbers, and underscores",
            ErrorCode.INVALID_USERNAME,
            field,
        )
    return ValidationResult.ok(field)


def validate_nickname(nickname: str | None) -> ValidationResult:
    field = "nickname"
    if not nickname or not nickname.strip():
        return ValidationResult.fail("Please enter a nickname", ErrorCode.MISSING_REQUIRED_FIELD, field)
    if len(nickname) > ProfileRules.NICKNAME_MAX_LENGTH:
        return ValidationResult.fail(
            f"Nickname must be {ProfileRules.NICKNAME_MAX_LENGTH} characters or less",
            ErrorCode.CONTENT_TOO_LONG,
            field,
        )
    return ValidationResult.ok(field)


def validate_bio(bio: str | None) -> ValidationResult:
    if bio is not None and len(bio) > ProfileRules.BIO_MAX_LENGTH:
        return ValidationResult.fail(
            f"Bio must be {ProfileRules.BIO_MAX_LENGTH} characters or less",
            ErrorCode.CONTENT_TOO_LONG,
            "bio",
        )
    return ValidationResult.ok("bio")


async def check_username_available(
    store: RemoteStore,
    username: str,
    exclude_user_id: str | None = None,
) -> bool:
    """Return True when no other user holds ``username`` (case-insensitive).

    Invalid usernames are never available. ``exclude_user_id`` lets a user
    keep their own current username.
    """
    if not validate_username(username).is_valid:
        return False

    # Username pattern excludes LIKE wildcards except "_", which must be literal
    pattern = username.replace("_", "\\_")
    filters = [ilike("username", pattern)]
    if exclude_user_id is not None:
        filters.append(neq("id", exclude_user_id))
    taken = await store.count(Tables.USERS, filters)
    return taken == 0


def validate_email(email: str | None, required_domain: str | None = None) -> ValidationResult:
    """Validate an e-mail address, optionally against a school domain.

    The domain check accepts subdomains: ``student.waseda.jp`` satisfies
    ``waseda.jp``.
    """
    field = "email"
    if not email or not email.strip():
        return ValidationResult.fail("Email is required", ErrorCode.MISSING_REQUIRED_FIELD, field)
    if not EmailRules.PATTERN.match(email):
        return ValidationResult.fail("Invalid email format", ErrorCode.INVALID_EMAIL, field)
    if required_domain:
        domain = email.rsplit("@", 1)[1].lower()
        required = required_domain.lower()
        if domain != required and not domain.endswith(f".{required}"):
            return ValidationResult.fail(
                f"Please use your @{required_domain} email address",
                ErrorCode.INVALID_EMAIL_DOMAIN,
                field,
            )
    return ValidationResult.ok(field)


__all__ = [
    "ValidationResult",
    "check_username_available",
    "validate_bio",
    "validate_email",
    "validate_nickname",
    "validate_username",
]
