"""
Tests for the feedsync error hierarchy and error factories.
"""

from decimal import Decimal
from enum import Enum
from pathlib import Path

import pytest

from feedsync.shared.errors import (
    ApplicationError,
    CliError,
    DomainError,
    ErrorCode,
    ErrorContext,
    FeedSyncError,
    InfrastructureError,
    QueryError,
    RemoteStoreError,
    create_cli_error,
    create_cli_output_error,
    create_config_error,
    create_remote_error,
    create_validation_error,
)


class _Color(Enum):
    RED = "red"


class TestErrorContext:
    """Test cases for ErrorContext."""

    def test_empty_context(self):
        """An empty context still exposes additional_data in safe_dict."""
        context = ErrorContext()

        assert context.operation is None
        assert context.safe_dict() == {"additional_data": {}}

    def test_additional_data_is_coerced_to_primitives(self):
        """Paths, enums and decimals become primitives; None values are dropped."""
        context = ErrorContext(
            additional_data={
                "path": Path("config/config.toml"),
                "color": _Color.RED,
                "ratio": Decimal("0.5"),
                "missing": None,
            },
        )

        assert context.additional_data == {
            "path": str(Path("config/config.toml")),
            "color": "red",
            "ratio": 0.5,
        }

    def test_non_primitive_value_is_rejected(self):
        """Nested containers cannot be carried in an error context."""
        with pytest.raises(TypeError):
            ErrorContext(additional_data={"rows": [1, 2]})

    def test_safe_dict_masks_user_id(self):
        """user_id never leaves the process in logs."""
        context = ErrorContext(operation="vote_post", user_id="u1")

        assert context.safe_dict() == {"operation": "vote_post", "additional_data": {}}
        assert context.safe_dict(mask_keys=())["user_id"] == "u1"

    def test_frozen(self):
        context = ErrorContext(operation="x")

        with pytest.raises(AttributeError):
            context.operation = "y"


class TestHierarchy:
    """Test cases for the exception classes."""

    def test_str_includes_code(self):
        error = DomainError(ErrorCode.SELF_FOLLOW, "You cannot follow yourself")

        assert str(error) == "SELF_FOLLOW: You cannot follow yourself"
        assert isinstance(error, FeedSyncError)

    def test_to_dict_keeps_original_error(self):
        error = InfrastructureError(
            ErrorCode.NETWORK_ERROR,
            "offline",
            original_error=ConnectionError("reset"),
        )

        data = error.to_dict()

        assert data["code"] == "NETWORK_ERROR"
        assert data["original_error"] == "reset"

    def test_remote_and_query_errors_are_infrastructure_errors(self):
        assert issubclass(RemoteStoreError, InfrastructureError)
        assert issubclass(QueryError, InfrastructureError)
        assert issubclass(CliError, ApplicationError)


class TestFactories:
    """Test cases for the create_* helpers."""

    def test_validation_error(self):
        error = create_validation_error("too long", field="content", operation="create_post")

        assert isinstance(error, DomainError)
        assert error.code == ErrorCode.VALIDATION_ERROR
        assert error.context.operation == "create_post"
        assert error.context.additional_data == {"field": "content"}

    def test_remote_error_carries_store_code(self):
        error = create_remote_error("duplicate", remote_code="23505", table="follows")

        assert error.remote_code == "23505"
        assert error.context.additional_data == {"table": "follows", "remote_code": "23505"}
        assert error.to_dict()["remote_code"] == "23505"

    def test_config_error(self):
        error = create_config_error("bad value", config_key="cache.stale_time")

        assert error.code == ErrorCode.CONFIGURATION_ERROR
        assert error.context.operation == "load_config"

    def test_cli_errors(self):
        error = create_cli_error("boom", command="demo", exit_code=3)
        output_error = create_cli_output_error("cannot encode", command="rules", output_type="json")

        assert (error.command, error.exit_code) == ("demo", 3)
        assert output_error.code == ErrorCode.CLI_OUTPUT_ERROR
        assert output_error.context.additional_data == {"command": "rules", "output_type": "json"}


def test_configuration_codes():
    """Test that configuration failures map onto exactly two codes."""
    config_codes = {code.value for code in ErrorCode if "CONFIG" in code.value}

    assert config_codes == {"CONFIGURATION_ERROR", "MISSING_CONFIG"}
    assert "APPLICATION_ERROR" not in ErrorCode.__members__
