"""
ReportVault Typer CLI Application

Fetch campaign and journey reports through the accumulative cache, watch
partial results until they complete, and inspect or clear the cache and
rate-limit state.
"""

from __future__ import annotations

from typing import Annotated

import typer

from reportvault.cli.commands import (
    cache_clear_command,
    cache_list_command,
    cache_stats_command,
    cache_timeframes_command,
    fetch_command,
    poll_command,
    rate_limits_clear_command,
    rate_limits_show_command,
)
from reportvault.cli.common.context import CliContext, set_cli_context
from reportvault.cli.common.options import (
    ConfigOption,
    JsonOutputOption,
    LogLevelOption,
    TimeframeOption,
    VerboseOption,
    VersionOption,
)
from reportvault.shared.constants import CLIDefaults

__version__ = CLIDefaults.VERSION


app = typer.Typer(
    name=CLIDefaults.APP_NAME,
    help="Accumulative report cache for a rate-limited reporting API.",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
cache_app = typer.Typer(help="Inspect and clear the report cache.", no_args_is_help=True)
rate_limits_app = typer.Typer(help="Inspect and clear rate-limit windows.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")
app.add_typer(rate_limits_app, name="rate-limits")


@app.callback()
def main(
    verbose: VerboseOption = CLIDefaults.DEFAULT_VERBOSE,
    log_level: LogLevelOption = None,
    json_output: JsonOutputOption = CLIDefaults.DEFAULT_JSON,
    config: ConfigOption = None,
    version: VersionOption = False,
) -> None:
    """Process the global options before any command runs."""
    set_cli_context(
        CliContext(
            verbose=verbose,
            log_level=log_level,
            json_output=json_output,
            config_path=config,
        ),
    )


@app.command("fetch")
def fetch_command_typer(
    items: Annotated[
        list[str],
        typer.Argument(help="Items as kind:id, e.g. campaign:abc123 or journey:j42. A bare id is a campaign."),
    ],
    timeframe: TimeframeOption = None,
    force_refresh: Annotated[
        bool,
        typer.Option("--force-refresh", "-f", help="Bypass fresh cache entries and fetch again."),
    ] = False,
    watch: Annotated[
        bool,
        typer.Option("--watch", "-w", help="Keep polling until every item has arrived."),
    ] = False,
) -> None:
    """
    Fetch reports, serving fresh ones from the cache.

    Items that could not be fetched in this run are listed as pending or
    rate limited; run the command again (or use --watch) to complete them.

    Examples:
        reportvault fetch campaign:abc123 journey:j42 --timeframe last-7-days

        reportvault --json fetch abc123 def456 --watch
    """
    fetch_command(items, timeframe, force_refresh=force_refresh, watch=watch)


@app.command("poll")
def poll_command_typer(
    timeframe: TimeframeOption = None,
    last_count: Annotated[
        int,
        typer.Option("--last-count", min=0, help="Count seen by the previous poll."),
    ] = 0,
    item_ids: Annotated[
        list[str] | None,
        typer.Option("--id", help="Restrict the answer to these item ids. Repeatable."),
    ] = None,
) -> None:
    """Show which reports are cached and fresh right now."""
    poll_command(timeframe, last_count, item_ids)


@cache_app.command("stats")
def cache_stats_typer() -> None:
    """Show cache totals."""
    cache_stats_command()


@cache_app.command("list")
def cache_list_typer(
    timeframe: TimeframeOption = None,
    include_stale: Annotated[
        bool,
        typer.Option("--include-stale", help="Also list entries older than the TTL."),
    ] = False,
) -> None:
    """List cached reports for a timeframe."""
    cache_list_command(timeframe, include_stale=include_stale)


@cache_app.command("timeframes")
def cache_timeframes_typer() -> None:
    """List timeframes that have cached reports."""
    cache_timeframes_command()


@cache_app.command("clear")
def cache_clear_typer(
    timeframe: Annotated[
        str | None,
        typer.Option("--timeframe", "-t", help="Only clear this timeframe."),
    ] = None,
) -> None:
    """Remove cached reports."""
    cache_clear_command(timeframe)


@rate_limits_app.command("show")
def rate_limits_show_typer() -> None:
    """Show active rate-limit windows."""
    rate_limits_show_command()


@rate_limits_app.command("clear")
def rate_limits_clear_typer(
    upstream: Annotated[
        str | None,
        typer.Option("--upstream", help="Only clear this upstream's window."),
    ] = None,
) -> None:
    """Clear rate-limit windows so the next fetch calls the upstream again."""
    rate_limits_clear_command(upstream)


if __name__ == "__main__":
    app()
