"""Rate-limit command implementations."""

from __future__ import annotations

from rich.table import Table

from reportvault.cli.common.context import get_cli_context
from reportvault.cli.common.error_decorator import handle_cli_errors
from reportvault.cli.common.runtime import configure, console, open_orchestrator
from reportvault.cli.json_formatter import write_json_output
from reportvault.shared.constants import CLIDefaults, CLIMessages
from reportvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError


@handle_cli_errors("rate-limits show")
def rate_limits_show_command() -> int:
    """Show the active rate-limit windows."""
    context = get_cli_context()
    settings = configure(context)
    with open_orchestrator(settings) as orchestrator:
        status = orchestrator.rate_limit_status()

    if context.is_json_output_enabled():
        write_json_output("rate-limits show", status)
        return CLIDefaults.EXIT_SUCCESS

    if not status["windows"]:
        console.print(CLIMessages.Info.NO_RATE_LIMITS)
        return CLIDefaults.EXIT_SUCCESS

    table = Table(title="Active rate limits", show_header=True, header_style="bold magenta")
    table.add_column("Upstream", style="cyan")
    table.add_column("Until", style="white")
    table.add_column("Remaining", style="yellow", justify="right")
    table.add_column("Window", style="green", justify="right")
    table.add_column("Strikes", justify="right")
    for window in status["windows"]:
        table.add_row(
            window["upstream"],
            window["until"],
            f"{window['remaining_seconds']:.0f}s",
            f"{window['window_seconds']:.0f}s",
            str(window["strikes"]),
        )
    console.print(table)
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("rate-limits clear")
def rate_limits_clear_command(upstream: str | None = None) -> int:
    """Clear one upstream's window, or all of them."""
    context = get_cli_context()
    settings = configure(context)
    with open_orchestrator(settings) as orchestrator:
        cleared = orchestrator.clear_rate_limits(upstream)

    if not cleared:
        raise InfrastructureError(
            ErrorCode.CACHE_WRITE_FAILED,
            "Failed to clear rate limits",
            ErrorContext(operation="rate_limits_clear_command", additional_data={"upstream": upstream or "*"}),
        )

    if context.is_json_output_enabled():
        write_json_output("rate-limits clear", {"cleared": True, "upstream": upstream})
    else:
        console.print(CLIMessages.Success.RATE_LIMITS_CLEARED)
    return CLIDefaults.EXIT_SUCCESS


__all__ = ["rate_limits_clear_command", "rate_limits_show_command"]
