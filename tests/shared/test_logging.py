"""
Tests for structured logging helpers.
"""

import json
import logging

import pytest
from rich.logging import RichHandler

from feedsync.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from feedsync.shared.logging import (
    StructuredFormatter,
    log_operation_error,
    log_operation_start,
    log_operation_success,
    log_validation_error,
    setup_structured_logger,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("feedsync.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test cases for StructuredFormatter."""

    def test_basic_fields(self):
        """Test that every record carries level, logger and message."""
        entry = json.loads(StructuredFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "feedsync.test"
        assert entry["message"] == "hello"
        assert "timestamp" in entry
        assert "error_code" not in entry

    def test_extra_fields(self):
        """Test that structured extras are copied into the JSON entry."""
        record = _record(
            error_code="QUERY_FAILED",
            operation="query_fetch",
            duration_ms=1.5,
            context={"key": "posts"},
        )

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["error_code"] == "QUERY_FAILED"
        assert entry["operation"] == "query_fetch"
        assert entry["duration_ms"] == 1.5
        assert entry["context"] == {"key": "posts"}


class TestSetupStructuredLogger:
    """Test cases for setup_structured_logger."""

    def test_rich_console_handler(self):
        """Test that the default logger writes through rich."""
        logger = setup_structured_logger("feedsync.test.rich", "debug")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_json_handler_and_file(self, tmp_path):
        """Test that JSON output and the log file both use StructuredFormatter."""
        log_file = tmp_path / "feedsync.log"
        logger = setup_structured_logger(
            "feedsync.test.json",
            "INFO",
            str(log_file),
            use_rich_console=False,
        )

        assert len(logger.handlers) == 2
        assert all(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers)

        logger.info("written")
        for handler in logger.handlers:
            handler.flush()
            handler.close()

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["message"] == "written"

    def test_reconfigure_replaces_handlers(self):
        """Test that calling setup twice does not stack handlers."""
        setup_structured_logger("feedsync.test.again")
        logger = setup_structured_logger("feedsync.test.again")

        assert len(logger.handlers) == 1


class TestLogHelpers:
    """Test cases for the log_operation_* helpers."""

    @pytest.fixture
    def logger(self):
        logger = logging.getLogger("tests.logging.helpers")
        logger.setLevel(logging.DEBUG)
        return logger

    def test_log_operation_error(self, logger, caplog):
        """Test that the error code and masked context are attached."""
        error = InfrastructureError(
            ErrorCode.QUERY_FAILED,
            "fetch failed",
            ErrorContext(operation="query_fetch", user_id="u1", additional_data={"key": "posts"}),
        )

        with caplog.at_level(logging.DEBUG, logger=logger.name):
            log_operation_error(logger, error, additional_context={"attempts": 3})

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.error_code == "QUERY_FAILED"
        assert record.operation == "query_fetch"
        assert record.context["additional_data"] == {"key": "posts"}
        assert record.context["attempts"] == 3
        assert "user_id" not in record.context

    def test_log_operation_start_and_success(self, logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=logger.name):
            log_operation_start(logger, "mutation_execute")
            log_operation_success(logger, "mutation_execute", 2.0, {"patched": 1})

        start, success = caplog.records[-2:]
        assert start.getMessage() == "Starting operation 'mutation_execute'"
        assert success.duration_ms == 2.0
        assert success.result_info == {"patched": 1}

    def test_log_validation_error(self, logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=logger.name):
            log_validation_error(logger, "username", "ab", "too short", {"user": "x"})

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.context == {"field": "username", "value": "ab", "reason": "too short", "user": "x"}
