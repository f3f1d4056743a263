"""
Reusable Typer Options Module

This module provides reusable Typer option types shared by the main callback
and the individual commands. Each is an ``Annotated`` alias, so a command
declares ``verbose: VerboseOption = 0``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from reportvault.cli.common.context import LogLevel
from reportvault.shared.constants import CLIDefaults


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"{CLIDefaults.APP_NAME} {CLIDefaults.VERSION}")
        raise typer.Exit


# Count-based for multiple -v flags
VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Enable verbose output (equivalent to --log-level DEBUG).",
    ),
]

LogLevelOption = Annotated[
    LogLevel | None,
    typer.Option(
        "--log-level",
        case_sensitive=False,
        help="Set the logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to the configured level.",
    ),
]

JsonOutputOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Enable machine-readable JSON output instead of human-readable format.",
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a TOML configuration file.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
]

VersionOption = Annotated[
    bool,
    typer.Option(
        "--version",
        "-V",
        help="Show version information and exit.",
        callback=version_callback,
        is_eager=True,
    ),
]

TimeframeOption = Annotated[
    str | None,
    typer.Option(
        "--timeframe",
        "-t",
        help="Report timeframe, e.g. last-7-days. Defaults to the configured timeframe.",
    ),
]


__all__ = [
    "ConfigOption",
    "JsonOutputOption",
    "LogLevelOption",
    "TimeframeOption",
    "VerboseOption",
    "VersionOption",
    "version_callback",
]
