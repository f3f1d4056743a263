"""
CLI Error Handling Utilities

This module provides consistent error handling across CLI commands: every
exception is mapped to a CliError with an exit code, logged with structured
context and reported on stderr or as a JSON envelope.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from reportvault.cli.json_formatter import write_json_output
from reportvault.shared.constants import CLIDefaults, CLIMessages
from reportvault.shared.errors import (
    ApplicationError,
    CliError,
    DomainError,
    InfrastructureError,
    ReportVaultError,
    create_cli_error,
)

logger = logging.getLogger(__name__)


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Handle CLI errors with consistent formatting and logging.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format

    Returns:
        Exit code for the CLI command
    """
    error_context: dict[str, Any] = {
        "command": command,
        "error_type": type(error).__name__,
        "json_output": json_output,
    }
    cli_error = _map_error_to_cli_error(error, command, error_context)
    _log_error(error, command, cli_error, error_context)
    _output_error(cli_error, error, command, error_context, json_output=json_output)

    return cli_error.exit_code


def _map_error_to_cli_error(
    error: BaseException,
    command: str,
    error_context: dict[str, Any],
) -> CliError:
    """Map specific exception types to CLI errors."""
    if isinstance(error, CliError):
        error_context["error_code"] = error.code.value
        return error

    if isinstance(error, DomainError):
        error_context["error_code"] = error.code.value
        return create_cli_error(
            message=CLIMessages.Error.VALIDATION_ERROR + error.message,
            command=command,
            original_error=error,
            exit_code=CLIDefaults.EXIT_INVALID_ARGUMENTS,
        )

    if isinstance(error, ApplicationError):
        error_context["error_code"] = error.code.value
        return create_cli_error(
            message=CLIMessages.Error.APPLICATION_ERROR + error.message,
            command=command,
            original_error=error,
        )

    if isinstance(error, InfrastructureError):
        error_context["error_code"] = error.code.value
        return create_cli_error(
            message=CLIMessages.Error.INFRASTRUCTURE_ERROR + error.message,
            command=command,
            original_error=error,
        )

    if isinstance(error, KeyboardInterrupt):
        error_context["interrupt_type"] = "user_interrupt"
        return create_cli_error(
            message=CLIMessages.Info.APPLICATION_INTERRUPTED,
            command=command,
            original_error=error,
            exit_code=CLIDefaults.EXIT_INTERRUPTED,
        )

    error_context["error_category"] = "unexpected"
    return create_cli_error(
        message=CLIMessages.Error.UNEXPECTED_ERROR + str(error),
        command=command,
        original_error=error,
    )


def _log_error(
    error: BaseException,
    command: str,
    cli_error: CliError,
    error_context: dict[str, Any],
) -> None:
    """Log the error with structured context."""
    if isinstance(error, KeyboardInterrupt):
        logger.warning(
            "Command interrupted: %s",
            cli_error.message,
            extra={"context": error_context},
        )
    elif not isinstance(error, ReportVaultError):
        logger.exception(
            "CLI error in %s: %s",
            command,
            cli_error.message,
            extra={"context": error_context},
        )
    else:
        logger.error(
            "CLI error in %s: %s",
            command,
            cli_error.message,
            extra={"context": error_context},
        )


def _output_error(
    cli_error: CliError,
    error: BaseException,
    command: str,
    error_context: dict[str, Any],
    *,
    json_output: bool,
) -> None:
    """Output error message in appropriate format."""
    if not json_output:
        sys.stderr.write(f"Error: {cli_error.message}\n")
        return

    try:
        write_json_output(
            command,
            {
                "error_code": cli_error.code.value,
                "error_type": type(error).__name__,
                "exit_code": cli_error.exit_code,
                "context": error_context,
            },
            success=False,
            errors=[cli_error.message],
        )
    except (OSError, UnicodeEncodeError) as output_error:
        logger.exception(
            "JSON output error: %s",
            output_error,
            extra={"context": error_context},
        )
        sys.stderr.write(f"Error: {cli_error.message}\n")


__all__ = ["handle_cli_error"]
