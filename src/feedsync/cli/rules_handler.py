"""Rules command handler for the feedsync CLI.

Prints which cache keys every mutation and realtime event invalidates.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from feedsync.cli.common.context import get_cli_context
from feedsync.cli.json_formatter import format_json_output
from feedsync.services.invalidation_router import EVENT_RULES, MUTATION_RULES, describe
from feedsync.shared.constants import CLICommands, CLIDefaults, CLIMessages

logger = logging.getLogger(__name__)


def collect_rules_data() -> dict[str, Any]:
    """Rule tables as plain data, keyed by mutation and event name."""
    return {
        "mutations": {
            mutation.value: [describe(template) for template in templates]
            for mutation, templates in MUTATION_RULES.items()
        },
        "events": {
            event.value: [describe(template) for template in templates]
            for event, templates in EVENT_RULES.items()
        },
    }


def _build_table(title: str, rules: dict[str, list[str]]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column(CLIMessages.COLUMN_TRIGGER, style="cyan", no_wrap=True)
    table.add_column(CLIMessages.COLUMN_PATTERNS, style="green")
    for trigger, patterns in rules.items():
        table.add_row(escape(trigger), escape(", ".join(patterns)))
    return table


def handle_rules_command(console: Console | None = None) -> int:
    """Handle the rules command.

    Returns:
        Exit code (0 for success)
    """
    context = get_cli_context()
    data = collect_rules_data()
    logger.debug(
        "Rendering %d mutation and %d event rules",
        len(data["mutations"]),
        len(data["events"]),
    )

    if context.is_json_output_enabled():
        output = format_json_output(success=True, command=CLICommands.RULES, data=data)
        sys.stdout.buffer.write(output)
        sys.stdout.buffer.write(b"\n")
        sys.stdout.buffer.flush()
        return CLIDefaults.EXIT_SUCCESS

    console = console or Console()
    console.print(_build_table(CLIMessages.RULES_MUTATIONS_TITLE, data["mutations"]))
    console.print(_build_table(CLIMessages.RULES_EVENTS_TITLE, data["events"]))
    return CLIDefaults.EXIT_SUCCESS
