"""Cache command implementations."""

from __future__ import annotations

from reportvault.cli.common.context import get_cli_context
from reportvault.cli.common.error_decorator import handle_cli_errors
from reportvault.cli.common.runtime import configure, console, open_orchestrator
from reportvault.cli.common.tables import key_value_table, reports_table
from reportvault.cli.json_formatter import write_json_output
from reportvault.shared.constants import CLIDefaults, CLIMessages
from reportvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError


@handle_cli_errors("cache stats")
def cache_stats_command() -> int:
    """Show cache totals."""
    context = get_cli_context()
    settings = configure(context)
    with open_orchestrator(settings) as orchestrator:
        info = orchestrator.cache_info()

    if context.is_json_output_enabled():
        write_json_output("cache stats", info)
    else:
        rows = [
            ("Database", info["db_path"]),
            ("Total Entries", info["total_entries"]),
            ("Fresh Entries", info["fresh_entries"]),
            ("Stale Entries", info["stale_entries"]),
            ("TTL", f"{info['ttl_seconds']}s"),
            ("Timeframes", info["timeframes"]),
        ]
        console.print(key_value_table(rows, title="Cache Statistics"))
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("cache list")
def cache_list_command(timeframe: str | None = None, *, include_stale: bool = False) -> int:
    """List cached reports for one timeframe."""
    context = get_cli_context()
    settings = configure(context)
    timeframe = timeframe or settings.cache.default_timeframe
    with open_orchestrator(settings) as orchestrator:
        reports = orchestrator.cached_reports(timeframe, fresh_only=not include_stale)

    if context.is_json_output_enabled():
        write_json_output(
            "cache list",
            {
                "timeframe": timeframe,
                "count": len(reports),
                "reports": [report.to_wire() for report in reports],
            },
        )
    elif reports:
        console.print(reports_table(reports, title=f"Cached reports ({timeframe})"))
    else:
        console.print(CLIMessages.Info.NO_CACHED_REPORTS)
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("cache timeframes")
def cache_timeframes_command() -> int:
    """List the timeframes that have cached reports."""
    context = get_cli_context()
    settings = configure(context)
    with open_orchestrator(settings) as orchestrator:
        timeframes = orchestrator.list_timeframes()

    if context.is_json_output_enabled():
        write_json_output("cache timeframes", {"timeframes": timeframes})
    elif timeframes:
        rows = [
            (row["timeframe"], f"{row['count']} (last {row['last_cached_at']:%Y-%m-%d %H:%M})")
            for row in timeframes
        ]
        console.print(key_value_table(rows, title="Cached timeframes"))
    else:
        console.print(CLIMessages.Info.NO_CACHED_REPORTS)
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("cache clear")
def cache_clear_command(timeframe: str | None = None) -> int:
    """Remove cached reports for one timeframe, or all of them."""
    context = get_cli_context()
    settings = configure(context)
    with open_orchestrator(settings) as orchestrator:
        cleared = orchestrator.clear_cache(timeframe)

    if not cleared:
        raise InfrastructureError(
            ErrorCode.CACHE_WRITE_FAILED,
            "Failed to clear the report cache",
            ErrorContext(operation="cache_clear_command", timeframe=timeframe),
        )

    if context.is_json_output_enabled():
        write_json_output("cache clear", {"cleared": True, "timeframe": timeframe})
    elif timeframe:
        console.print(CLIMessages.Success.CACHE_CLEARED_TIMEFRAME.format(timeframe=timeframe))
    else:
        console.print(CLIMessages.Success.CACHE_CLEARED)
    return CLIDefaults.EXIT_SUCCESS


__all__ = [
    "cache_clear_command",
    "cache_list_command",
    "cache_stats_command",
    "cache_timeframes_command",
]
