"""Service protocols for dependency inversion.

Core orchestration code depends on these interfaces rather than on the HTTP
client or the SQLite database directly.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from reportvault.core.models import Item, RateLimitWindow, ReportRecord


class ReportingClientProtocol(Protocol):
    """Protocol for the upstream reporting API.

    Implementations fetch one batch of items and either return their records
    or raise one of ``RateLimitError``, ``TransientError`` or
    ``InvalidItemError``. Records fetched before the failure travel on the
    error's ``partial_records``.

    Example:
        >>> client: ReportingClientProtocol = HttpReportingClient(settings.upstream)
        >>> records = client.fetch_batch(items, "last-7-days")
    """

    def fetch_batch(self, items: Sequence[Item], timeframe: str) -> list[ReportRecord]:
        """Fetch reports for a batch of items.

        Args:
            items: At most one batch worth of items
            timeframe: Timeframe key

        Returns:
            One record per item that was fetched successfully
        """


class RateLimitWindowStore(Protocol):
    """Durable storage for rate-limit windows."""

    def load_rate_limit_windows(self, now: datetime) -> list[RateLimitWindow]:
        """Return windows that are active, or within their escalation grace, at ``now``."""

    def save_rate_limit_window(self, window: RateLimitWindow) -> None:
        """Insert or replace the window for ``window.upstream``."""

    def delete_rate_limit_windows(self, upstream: str | None = None) -> int:
        """Delete one upstream's window, or all of them."""
