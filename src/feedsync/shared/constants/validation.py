"""
Validation Constants

Patterns and limits for usernames, profiles and e-mail addresses.
"""

import re


class UsernameRules:
    """Username validation rules."""

    MIN_LENGTH = 3
    MAX_LENGTH = 20
    PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")

    # Generated usernames for skipped onboarding
    GENERATED_PREFIX = "user_"
    GENERATED_SUFFIX_LENGTH = 8
    GENERATED_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


class ProfileRules:
    """Profile field limits."""

    NICKNAME_MAX_LENGTH = 20
    BIO_MAX_LENGTH = 150
    ANONYMOUS_NICKNAME = "Anonymous User"


class EmailRules:
    """E-mail validation rules."""

    PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SearchRules:
    """User search rules."""

    MIN_TERM_LENGTH = 2
    UUID_PATTERN = re.compile(
        r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
        re.IGNORECASE,
    )


class DisplayNames:
    """Fallback display names."""

    ANONYMOUS = "Anonymous"
    UNKNOWN_ACTOR = "Someone"
    UNKNOWN_USER = "Unknown User"
