"""Rich table builders for CLI output."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from rich.table import Table

from reportvault.core.models import FetchResult, ReportRecord

# Metrics shown as columns, in order; the rest is available through --json
DISPLAY_METRICS: tuple[tuple[str, str], ...] = (
    ("total_recipients", "Recipients"),
    ("deliveries", "Delivered"),
    ("opens", "Opens"),
    ("clicks", "Clicks"),
    ("bounces", "Bounces"),
    ("unsubscribes", "Unsubs"),
)


def _format_metric(value: float | None) -> str:
    if value is None:
        return "-"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def reports_table(reports: Sequence[ReportRecord], title: str | None = None) -> Table:
    """One row per report with the headline metrics."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Kind", style="blue")
    table.add_column("Name", style="white")
    for _, label in DISPLAY_METRICS:
        table.add_column(label, style="green", justify="right")
    table.add_column("Fetched", style="dim")

    for record in reports:
        table.add_row(
            record.id,
            record.kind.value,
            record.name,
            *(_format_metric(record.metrics.get(key)) for key, _ in DISPLAY_METRICS),
            record.fetched_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def summary_table(result: FetchResult) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    summary = result.summary
    table.add_row("Source", summary.source)
    table.add_row("Loaded", f"{summary.fetched} of {summary.total}")
    if result.pending:
        table.add_row("Pending", ", ".join(result.pending))
    if result.rate_limited:
        table.add_row("Rate limited", ", ".join(result.rate_limited))
    if result.invalid:
        table.add_row("Invalid", ", ".join(result.invalid))
    if result.retry_after:
        table.add_row("Retry after", f"{result.retry_after:.0f}s")
    if summary.last_updated is not None:
        table.add_row("Last updated", summary.last_updated.isoformat(timespec="seconds"))
    return table


def key_value_table(rows: Iterable[tuple[str, Any]], title: str | None = None) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in rows:
        table.add_row(key, str(value))
    return table


__all__ = ["DISPLAY_METRICS", "key_value_table", "reports_table", "summary_table"]
