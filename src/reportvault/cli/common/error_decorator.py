"""CLI error handling decorator.

Wraps command handlers that return an exit code so every command maps
exceptions through ``handle_cli_error`` and ends with ``typer.Exit``.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import typer

from reportvault.cli.common.context import cli_context_var
from reportvault.cli.common.error_handler import handle_cli_error
from reportvault.shared.constants import CLIDefaults

F = TypeVar("F", bound=Callable[..., int])


def handle_cli_errors(command_name: str) -> Callable[[F], Callable[..., None]]:
    """Decorator for standardized CLI error handling.

    Args:
        command_name: CLI command name used in logs and JSON output

    Example:
        >>> @handle_cli_errors("cache stats")
        ... def cache_stats_command() -> int:
        ...     return CLIDefaults.EXIT_SUCCESS
    """

    def decorator(func: F) -> Callable[..., None]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> None:
            try:
                exit_code = func(*args, **kwargs)
            except (typer.Exit, typer.Abort):
                raise
            except (Exception, KeyboardInterrupt) as e:
                context = cli_context_var.get()
                json_output = bool(context and context.is_json_output_enabled())
                exit_code = handle_cli_error(e, command_name, json_output=json_output)
                raise typer.Exit(exit_code) from e
            if exit_code != CLIDefaults.EXIT_SUCCESS:
                raise typer.Exit(exit_code)

        return wrapper

    return decorator


__all__ = ["handle_cli_errors"]
