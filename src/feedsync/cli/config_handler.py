"""Config command handler for the feedsync CLI."""

from __future__ import annotations

import logging
import sys
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from feedsync.cli.common.context import get_cli_context
from feedsync.cli.json_formatter import format_json_output
from feedsync.config.loader import load_settings
from feedsync.config.models.settings import Settings
from feedsync.shared.constants import CLICommands, CLIDefaults

logger = logging.getLogger(__name__)


def _flatten(prefix: str, value: Any, rows: list[tuple[str, str]]) -> None:
    if isinstance(value, dict):
        for key, nested in value.items():
            _flatten(f"{prefix}.{key}" if prefix else key, nested, rows)
    else:
        rows.append((prefix, str(value)))


def settings_rows(settings: Settings) -> list[tuple[str, str]]:
    """Dotted setting names with their values, in declaration order."""
    rows: list[tuple[str, str]] = []
    _flatten("", settings.model_dump(mode="json"), rows)
    return rows


def handle_config_command(console: Console | None = None) -> int:
    """Show the settings the other commands would run with.

    Raises:
        ApplicationError: If the configuration file is missing or invalid
    """
    context = get_cli_context()
    settings = load_settings(context.config_file)
    logger.debug("Loaded settings from %s", context.config_file or "defaults")

    if context.is_json_output_enabled():
        output = format_json_output(
            success=True,
            command=CLICommands.CONFIG,
            data=settings.model_dump(mode="json"),
        )
        sys.stdout.buffer.write(output)
        sys.stdout.buffer.write(b"\n")
        sys.stdout.buffer.flush()
        return CLIDefaults.EXIT_SUCCESS

    table = Table(title="Effective configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for name, value in settings_rows(settings):
        table.add_row(escape(name), escape(value))

    console = console or Console()
    console.print(table)
    return CLIDefaults.EXIT_SUCCESS
