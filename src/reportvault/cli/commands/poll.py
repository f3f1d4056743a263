"""Poll command handler."""

from __future__ import annotations

from reportvault.cli.common.context import get_cli_context
from reportvault.cli.common.error_decorator import handle_cli_errors
from reportvault.cli.common.runtime import configure, console, open_orchestrator
from reportvault.cli.common.tables import reports_table
from reportvault.cli.json_formatter import write_json_output
from reportvault.shared.constants import CLIDefaults


@handle_cli_errors("poll")
def poll_command(
    timeframe: str | None = None,
    last_count: int = 0,
    item_ids: list[str] | None = None,
) -> int:
    """Show what is cached and fresh for a timeframe right now."""
    context = get_cli_context()
    settings = configure(context)

    with open_orchestrator(settings) as orchestrator:
        result = orchestrator.poll(timeframe, last_count, item_ids or None)

    if context.is_json_output_enabled():
        write_json_output("poll", result.to_wire())
        return CLIDefaults.EXIT_SUCCESS

    if result.reports:
        console.print(reports_table(result.reports, title=f"Cached reports: {result.count}"))
    style = "green" if result.has_updates else "dim"
    console.print(f"[{style}]{result.message}[/{style}]")
    return CLIDefaults.EXIT_SUCCESS


__all__ = ["poll_command"]
