"""
JSON Output Formatter for the feedsync CLI

Every command produces the same envelope when ``--json`` is given, so
scripts can parse the output of any command the same way.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import orjson


def format_json_output(
    success: bool,
    command: str,
    data: Any | None = None,
    errors: list[str] | None = None,
    warnings: list[str] | None = None,
) -> bytes:
    """
    Format command output as JSON.

    Args:
        success: Whether the command executed successfully
        command: The command name (e.g., "rules", "demo")
        data: The command's output data
        errors: List of error messages
        warnings: List of warning messages

    Returns:
        JSON-encoded bytes ready for output

    Example:
        >>> output = format_json_output(
        ...     success=True,
        ...     command="rules",
        ...     data={"mutations": {"create_post": ["posts[*]"]}}
        ... )
        >>> print(output.decode())
        {
          "command": "rules",
          "data": {
            "mutations": {
              "create_post": [
                "posts[*]"
              ]
            }
          },
          "errors": [],
          "success": true,
          "timestamp": "2026-10-19T10:30:00+00:00",
          "warnings": []
        }
    """
    if errors is None:
        errors = []
    if warnings is None:
        warnings = []

    # If there are errors, success should be False
    if errors:
        success = False

    json_data = {
        "success": success,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "command": command,
        "data": safe_json_serialize(data),
        "errors": errors,
        "warnings": warnings,
    }

    try:
        return orjson.dumps(
            json_data,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2,
        )
    except TypeError as e:
        error_data = {
            "success": False,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "command": command,
            "data": None,
            "errors": [f"JSON serialization failed: {e!s}"],
            "warnings": [],
        }
        return orjson.dumps(
            error_data,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2,
        )


def safe_json_serialize(obj: Any) -> Any:
    """
    Convert an object into JSON-serializable primitives.

    Pydantic models go through ``model_dump_json`` so their own field
    serializers (datetimes, enums) are honoured. Tuples such as query keys
    become lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [safe_json_serialize(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): safe_json_serialize(v) for k, v in obj.items()}
    if hasattr(obj, "model_dump_json"):
        return orjson.loads(obj.model_dump_json())
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


def format_success_output(command: str, data: Any) -> bytes:
    """Convenience function to format successful command output."""
    return format_json_output(success=True, command=command, data=data)


def format_error_output(command: str, errors: list[str], data: Any | None = None) -> bytes:
    """Convenience function to format error output."""
    return format_json_output(success=False, command=command, data=data, errors=errors)
