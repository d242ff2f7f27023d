"""
Reusable Typer Options Module

Common option declarations shared by the main callback and the commands.
Use them as ``Annotated[int, verbose_option] = 0``.
"""

from __future__ import annotations

import typer

from feedsync.shared.constants import CLIHelp, CLIOptions

# Verbose option - count-based for multiple -v flags
verbose_option = typer.Option(
    CLIOptions.VERBOSE,
    CLIOptions.VERBOSE_SHORT,
    count=True,
    help="Enable verbose output (equivalent to --log-level DEBUG).",
)

log_level_option = typer.Option(
    CLIOptions.LOG_LEVEL,
    case_sensitive=False,
    help="Set the logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default: the configured [logging] level.",
)

json_output_option = typer.Option(
    CLIOptions.JSON,
    help="Enable machine-readable JSON output instead of human-readable format.",
)

config_file_option = typer.Option(
    CLIOptions.CONFIG_FILE,
    CLIOptions.CONFIG_FILE_SHORT,
    help=CLIHelp.CONFIG_FILE_HELP,
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
)

# Version option - for main app only
version_option = typer.Option(
    CLIOptions.VERSION,
    CLIOptions.VERSION_SHORT,
    help=CLIHelp.VERSION_HELP,
    is_eager=True,
)
