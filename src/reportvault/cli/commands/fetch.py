"""Fetch command handler.

Runs the orchestrator for the given items and, with ``--watch``, keeps
polling until every item has arrived or the polling ceiling is reached.
"""

from __future__ import annotations

import logging

from reportvault.cli.common.context import get_cli_context
from reportvault.cli.common.error_decorator import handle_cli_errors
from reportvault.cli.common.runtime import configure, console, open_orchestrator
from reportvault.cli.common.tables import reports_table, summary_table
from reportvault.cli.json_formatter import write_json_output
from reportvault.config.models.settings import Settings
from reportvault.core.models import FetchResult, PollResult
from reportvault.services.orchestrator import FetchOrchestrator
from reportvault.services.polling_notifier import PollingNotifier, PollingState
from reportvault.shared.constants import CLIDefaults, CLIMessages
from reportvault.shared.errors import CliError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)


@handle_cli_errors("fetch")
def fetch_command(
    items: list[str],
    timeframe: str | None = None,
    *,
    force_refresh: bool = False,
    watch: bool = False,
) -> int:
    """Fetch reports for ``items`` and print them.

    Returns:
        Exit code; EXIT_ERROR when ``--watch`` timed out before completion
    """
    if not items:
        raise CliError(
            ErrorCode.CLI_INVALID_ARGUMENTS,
            CLIMessages.Error.NO_ITEMS,
            ErrorContext(operation="fetch_command"),
            command="fetch",
            exit_code=CLIDefaults.EXIT_INVALID_ARGUMENTS,
        )

    context = get_cli_context()
    settings = configure(context)
    timeframe = timeframe or settings.cache.default_timeframe
    state: PollingState | None = None

    with open_orchestrator(settings) as orchestrator:
        result = orchestrator.fetch(items, timeframe, force_refresh=force_refresh)
        if watch and result.partial:
            result, state = _watch(orchestrator, settings, items, timeframe, result)

    if context.is_json_output_enabled():
        data = result.to_wire()
        if state is not None:
            data["watchState"] = state.value
        write_json_output("fetch", data)
    else:
        _print_result(result, timeframe)
        if state is PollingState.TIMED_OUT:
            console.print("[yellow]Gave up waiting for the remaining items; run fetch again later.[/yellow]")

    if state is PollingState.TIMED_OUT:
        return CLIDefaults.EXIT_ERROR
    return CLIDefaults.EXIT_SUCCESS


def _watch(
    orchestrator: FetchOrchestrator,
    settings: Settings,
    items: list[str],
    timeframe: str,
    result: FetchResult,
) -> tuple[FetchResult, PollingState]:
    """Drive a PollingNotifier in the foreground until it stops."""
    json_output = get_cli_context().is_json_output_enabled()
    valid_items, _ = orchestrator.parse_items(items)
    item_ids = [item.id for item in valid_items]

    def on_update(update: FetchResult | PollResult) -> None:
        available = update.count if isinstance(update, PollResult) else len(update.reports)
        if not json_output:
            console.print(f"[blue]{available} of {len(item_ids)} reports available[/blue]")

    notifier = PollingNotifier.from_settings(
        settings.polling,
        poll_fn=lambda last_count: orchestrator.poll(timeframe, last_count, item_ids),
        refetch_fn=lambda: orchestrator.fetch(items, timeframe),
        on_update=on_update,
    )
    notifier.observe(result)
    if not json_output and not notifier.state.is_terminal:
        console.print(CLIMessages.Info.WATCHING.format(count=result.unresolved))

    state = notifier.run_until_done()
    logger.info("Watch finished in state %s", state.value)

    if state is PollingState.RESOLVED:
        # Every item is fresh now, so this is served from the cache
        return orchestrator.fetch(items, timeframe), state
    return notifier.last_result or result, state


def _print_result(result: FetchResult, timeframe: str) -> None:
    if result.reports:
        console.print(reports_table(result.reports, title=f"Reports ({timeframe})"))
    else:
        console.print("[yellow]No reports available yet[/yellow]")
    console.print(summary_table(result))
    if result.message:
        style = "yellow" if result.partial else "green"
        console.print(f"[{style}]{result.message}[/{style}]")


__all__ = ["fetch_command"]
