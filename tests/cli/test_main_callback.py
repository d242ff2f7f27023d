"""Tests for the main CLI callback."""

import logging

import pytest
import typer
from rich.logging import RichHandler

from feedsync.cli.common.context import LogLevel, get_cli_context
from feedsync.cli.typer_app import main_callback
from feedsync.shared.errors import ApplicationError, ErrorCode
from feedsync.shared.logging import StructuredFormatter


def _call(**overrides):
    options = {
        "verbose": 0,
        "log_level": None,
        "json_output": False,
        "config_file": None,
        "version": False,
    }
    options.update(overrides)
    main_callback(**options)


class TestMainCallback:
    """Test cases for main_callback."""

    def test_defaults_come_from_settings(self, isolated_config):
        """Test that the configured [logging] level is used without --log-level."""
        _call()

        context = get_cli_context()
        assert context.log_level == LogLevel.WARNING
        assert logging.getLogger("feedsync").level == logging.WARNING

    def test_sets_context_directly(self, isolated_config):
        """Test that main_callback directly sets the context correctly."""
        _call(verbose=2, log_level=LogLevel.ERROR, json_output=True)

        context = get_cli_context()
        assert context.verbose == 2
        assert context.json_output is True
        assert context.get_effective_log_level() == "DEBUG"
        assert logging.getLogger("feedsync").level == logging.DEBUG

    def test_log_level_option_overrides_settings(self, isolated_config):
        _call(log_level=LogLevel.INFO)

        assert get_cli_context().log_level == LogLevel.INFO
        assert logging.getLogger("feedsync").level == logging.INFO

    def test_config_file_controls_logger(self, isolated_config):
        """Test that [logging] settings choose JSON console output and a log file."""
        log_file = isolated_config / "feedsync.log"
        config_file = isolated_config / "cli.toml"
        config_file.write_text(
            f'[logging]\nlevel = "error"\njson_format = true\nfile = "{log_file.as_posix()}"\n',
            encoding="utf-8",
        )

        _call(config_file=config_file)

        logger = logging.getLogger("feedsync")
        assert get_cli_context().config_file == config_file
        assert logger.level == logging.ERROR
        assert len(logger.handlers) == 2
        assert not any(isinstance(h, RichHandler) for h in logger.handlers)
        assert all(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers)

    def test_rich_handler_by_default(self, isolated_config):
        _call()

        handlers = logging.getLogger("feedsync").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)

    def test_version_exits(self, isolated_config, capsys):
        with pytest.raises(typer.Exit):
            _call(version=True)

        assert "feedsync CLI v0.1.0" in capsys.readouterr().out

    def test_invalid_config_raises(self, isolated_config):
        config_file = isolated_config / "bad.toml"
        config_file.write_text("[cache]\nretry = -3\n", encoding="utf-8")

        with pytest.raises(ApplicationError) as exc_info:
            _call(config_file=config_file)

        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR

    def test_logger_setup_arguments(self, isolated_config, mocker):
        """Test that the effective level and [logging] options reach the logger setup."""
        setup = mocker.patch("feedsync.cli.typer_app.setup_structured_logger")

        _call(verbose=1)

        setup.assert_called_once_with(level="DEBUG", log_file=None, use_rich_console=True)
