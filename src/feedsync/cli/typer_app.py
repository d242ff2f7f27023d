"""
feedsync Typer CLI Application

Command-line entry point for inspecting the synchronization layer: the
invalidation rule tables, the effective configuration and a scripted demo
session against the in-memory store.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Callable, Optional

import typer

from feedsync.cli.common.context import CliContext, LogLevel, get_cli_context, set_cli_context
from feedsync.cli.common.error_handler import handle_cli_error
from feedsync.cli.common.options import (
    config_file_option,
    json_output_option,
    log_level_option,
    verbose_option,
    version_option,
)
from feedsync.config.loader import load_settings
from feedsync.shared.constants import CLICommands, CLIDefaults, CLIHelp
from feedsync.shared.logging import setup_structured_logger

# Version information
__version__ = CLIDefaults.VERSION


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(CLIHelp.VERSION_TEXT.format(version=__version__))
        raise typer.Exit


def main_callback(
    *,
    verbose: int,
    log_level: LogLevel | None,
    json_output: bool,
    config_file: Path | None,
    version: bool,
) -> None:
    """
    Process the common options before any command runs.

    Sets the global CLI context and configures the package logger from the
    ``[logging]`` settings. ``--log-level`` and ``-v`` override the
    configured level.
    """
    if version:
        version_callback(value=True)

    settings = load_settings(config_file)
    context = CliContext(
        verbose=verbose,
        log_level=log_level or LogLevel(settings.logging.level),
        json_output=json_output,
        config_file=config_file,
    )
    set_cli_context(context)
    setup_structured_logger(
        level=context.get_effective_log_level(),
        log_file=settings.logging.file,
        use_rich_console=not settings.logging.json_format,
    )


app = typer.Typer(
    name=CLIHelp.APP_NAME,
    help=CLIHelp.APP_DESCRIPTION,
    add_completion=True,
    rich_markup_mode=CLIHelp.APP_STYLE,
    no_args_is_help=True,
    invoke_without_command=True,
)


@app.callback()
def main(
    verbose: Annotated[int, verbose_option] = 0,
    log_level: Annotated[Optional[LogLevel], log_level_option] = None,
    json_output: Annotated[bool, json_output_option] = False,
    config_file: Annotated[Optional[Path], config_file_option] = None,
    version: Annotated[bool, version_option] = False,
) -> None:
    """Main CLI callback with error handling."""
    try:
        main_callback(
            verbose=verbose,
            log_level=log_level,
            json_output=json_output,
            config_file=config_file,
            version=version,
        )
    except typer.Exit:
        raise
    except Exception as e:
        exit_code = handle_cli_error(e, "main-callback", json_output=json_output)
        raise typer.Exit(exit_code) from e


def _run(command: str, handler: Callable[[], int]) -> None:
    json_output = get_cli_context().is_json_output_enabled()
    try:
        exit_code = handler()
    except Exception as e:
        exit_code = handle_cli_error(e, command, json_output=json_output)
    if exit_code != CLIDefaults.EXIT_SUCCESS:
        raise typer.Exit(exit_code)


@app.command(CLICommands.RULES, help=CLIHelp.RULES_HELP)
def rules_command() -> None:
    """
    Show which cached queries each mutation and realtime event invalidates.

    Examples:
        feedsync rules
        feedsync --json rules
    """
    from feedsync.cli.rules_handler import handle_rules_command

    _run(CLICommands.RULES, handle_rules_command)


@app.command(CLICommands.CONFIG, help=CLIHelp.CONFIG_HELP)
def config_command() -> None:
    """
    Show the effective configuration after files and environment are applied.

    Examples:
        feedsync config
        feedsync --config config/config.toml config
        FEEDSYNC_CACHE__STALE_TIME=60 feedsync --json config
    """
    from feedsync.cli.config_handler import handle_config_command

    _run(CLICommands.CONFIG, handle_config_command)


@app.command(CLICommands.DEMO, help=CLIHelp.DEMO_HELP)
def demo_command() -> None:
    """
    Run a scripted two-user session against the in-memory store.

    Examples:
        feedsync demo
        feedsync -v demo
        feedsync --json demo
    """
    from feedsync.cli.demo_handler import handle_demo_command

    _run(CLICommands.DEMO, handle_demo_command)


if __name__ == "__main__":
    app()
