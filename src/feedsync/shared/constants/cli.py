"""
CLI Configuration Constants

This module contains all constants related to command-line interface
help text, option names, and default values.
"""

from typing import Literal

from .application import Application


class CLICommands:
    """Command names."""

    RULES = "rules"
    CONFIG = "config"
    DEMO = "demo"


class CLIOptions:
    """CLI option names and flags."""

    VERBOSE = "--verbose"
    VERBOSE_SHORT = "-v"
    LOG_LEVEL = "--log-level"
    JSON = "--json"
    VERSION = "--version"
    VERSION_SHORT = "-V"
    CONFIG_FILE = "--config"
    CONFIG_FILE_SHORT = "-c"


class CLIHelp:
    """CLI help text and descriptions."""

    VERSION_HELP = "Print version information and exit."
    VERSION_TEXT = "feedsync CLI v{version}"

    APP_NAME = Application.NAME
    APP_DESCRIPTION = "feedsync - query cache, mutation and invalidation toolkit for a campus social feed"
    APP_STYLE: Literal["rich"] = "rich"

    RULES_HELP = "Show the invalidation rules for mutations and realtime events"
    CONFIG_HELP = "Show the effective configuration"
    CONFIG_FILE_HELP = "Path to a TOML configuration file"
    DEMO_HELP = "Run a scripted session against the in-memory store"


class CLIMessages:
    """CLI message templates."""

    RULES_MUTATIONS_TITLE = "Mutation invalidation rules"
    RULES_EVENTS_TITLE = "Realtime invalidation rules"
    DEMO_TITLE = "Cache state after demo session"
    DEMO_STEP = "[blue]{step}[/blue]"
    DEMO_DONE = "[green]Demo session completed[/green]"

    COLUMN_TRIGGER = "Trigger"
    COLUMN_PATTERNS = "Invalidated keys"
    COLUMN_KEY = "Key"
    COLUMN_STATUS = "Status"
    COLUMN_DATA = "Data"


class CLIDefaults:
    """CLI default values."""

    VERSION = Application.VERSION
    EXIT_SUCCESS = 0
    EXIT_INTERRUPTED = 130
