"""
JSON Output Formatter for the ReportVault CLI

Every command produces the same envelope when ``--json`` is given:
``{success, timestamp, command, data, errors, warnings}``.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
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
        command: The command name (e.g., "fetch", "cache stats")
        data: The command's output data
        errors: List of error messages
        warnings: List of warning messages

    Returns:
        JSON-encoded bytes ready for output

    Example:
        >>> output = format_json_output(success=True, command="fetch", data={"partial": False})
        >>> orjson.loads(output)["data"]
        {'partial': False}
    """
    if errors is None:
        errors = []
    if warnings is None:
        warnings = []

    if errors:
        success = False

    json_data = {
        "success": success,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "command": command,
        "data": data,
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


def write_json_output(
    command: str,
    data: Any | None = None,
    *,
    success: bool = True,
    errors: list[str] | None = None,
    warnings: list[str] | None = None,
) -> None:
    """Write the JSON envelope to stdout."""
    output = format_json_output(success, command, data, errors, warnings)
    sys.stdout.write(output.decode("utf-8"))
    sys.stdout.write("\n")
    sys.stdout.flush()


__all__ = ["format_json_output", "write_json_output"]
