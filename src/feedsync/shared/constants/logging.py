"""
Logging Configuration Constants

This module contains all constants related to logging configuration,
log levels, and log formatting.
"""

from typing import ClassVar


class LogConfig:
    """Log configuration constants."""

    LEVELS: ClassVar[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    DEFAULT_LEVEL = "WARNING"
    DEFAULT_CONSOLE_OUTPUT = True
    DEFAULT_JSON_FORMAT = False


class LogOperationNames:
    """Operation names used in structured log records."""

    QUERY_FETCH = "query_fetch"
    QUERY_INVALIDATE = "query_invalidate"
    MUTATION_EXECUTE = "mutation_execute"
    MUTATION_ROLLBACK = "mutation_rollback"
    REALTIME_DISPATCH = "realtime_dispatch"
    RESOLVE_CHAT = "resolve_chat"
    LOAD_CONFIG = "load_config"
