"""Delete operations for the report cache."""

from __future__ import annotations

import logging

from reportvault.services.sqlite_cache.operations.base import BaseOperation

logger = logging.getLogger(__name__)


class UpdateOperations(BaseOperation):
    """Delete operations for cache management."""

    def clear(self, timeframe: str | None = None) -> int:
        """Clear one timeframe's entries, or all of them.

        Returns:
            Number of cleared entries
        """
        self._validate_connection()

        if timeframe:
            cursor = self.conn.execute("DELETE FROM report_cache WHERE timeframe = ?", (timeframe,))
            logger.info("Cleared cache for timeframe: %s", timeframe)
        else:
            cursor = self.conn.execute("DELETE FROM report_cache")
            logger.info("Cleared all cache entries")

        return cursor.rowcount

    def delete_rate_limit_windows(self, upstream: str | None = None) -> int:
        """Delete one upstream's window, or all windows."""
        self._validate_connection()
        if upstream:
            cursor = self.conn.execute("DELETE FROM rate_limit_windows WHERE upstream = ?", (upstream,))
        else:
            cursor = self.conn.execute("DELETE FROM rate_limit_windows")
        return cursor.rowcount
