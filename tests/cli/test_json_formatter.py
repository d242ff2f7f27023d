"""Tests for the CLI JSON envelope."""

import json
from datetime import datetime, timezone

from feedsync.cli.json_formatter import (
    format_error_output,
    format_json_output,
    format_success_output,
    safe_json_serialize,
)
from feedsync.config import CacheSettings
from feedsync.services.query_cache import QueryStatus


class TestFormatJsonOutput:
    """Test cases for format_json_output."""

    def test_success_envelope(self):
        """Test that the envelope carries every field with sorted keys."""
        output = format_success_output("rules", {"mutations": {"create_post": ["posts[*]"]}})

        data = json.loads(output)
        assert data["success"] is True
        assert data["command"] == "rules"
        assert data["data"] == {"mutations": {"create_post": ["posts[*]"]}}
        assert data["errors"] == []
        assert data["warnings"] == []
        assert list(data) == sorted(data)

    def test_errors_force_failure(self):
        data = json.loads(format_json_output(True, "demo", errors=["boom"]))

        assert data["success"] is False
        assert data["errors"] == ["boom"]

    def test_error_output(self):
        data = json.loads(format_error_output("config", ["missing"], data={"exit_code": 1}))

        assert data["success"] is False
        assert data["data"] == {"exit_code": 1}


class TestSafeJsonSerialize:
    """Test cases for safe_json_serialize."""

    def test_query_keys_become_lists(self):
        assert safe_json_serialize(("posts", 35.7, 139.7, 5000)) == ["posts", 35.7, 139.7, 5000]

    def test_enum_and_datetime(self):
        moment = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

        assert safe_json_serialize(QueryStatus.SUCCESS) == QueryStatus.SUCCESS.value
        assert safe_json_serialize({"at": moment}) == {"at": moment.isoformat()}

    def test_pydantic_model(self):
        assert safe_json_serialize(CacheSettings(stale_time=10, gc_time=20))["gc_time"] == 20

    def test_unknown_object_is_stringified(self):
        class Opaque:
            def __str__(self):
                return "opaque"

        assert safe_json_serialize({1: Opaque()}) == {"1": "opaque"}
