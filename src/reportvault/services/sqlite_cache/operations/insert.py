"""Insert operations for the report cache."""

from __future__ import annotations

import logging
from datetime import datetime

import orjson

from reportvault.core.models import RateLimitWindow, ReportRecord
from reportvault.services.sqlite_cache.operations.base import BaseOperation

logger = logging.getLogger(__name__)


class InsertOperations(BaseOperation):
    """Insert-or-replace operations.

    Each statement replaces a whole row, so a key is never partially written.
    """

    def upsert_record(self, record: ReportRecord, timeframe: str, cached_at: datetime) -> None:
        """Store ``record`` under ``(record.id, timeframe)``.

        Args:
            record: Report to cache
            timeframe: Timeframe namespace
            cached_at: Store clock time of this write
        """
        self._validate_connection()

        record_json = orjson.dumps(record.model_dump(mode="json"))

        self.conn.execute(
            """
            INSERT OR REPLACE INTO report_cache (item_id, timeframe, kind, record, cached_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.id,
                timeframe,
                record.kind.value,
                record_json.decode("utf-8"),
                self._to_timestamp(cached_at),
            ),
        )

        logger.debug(
            "Cache upserted: item=%s, timeframe=%s, size=%d bytes",
            record.id,
            timeframe,
            len(record_json),
        )

    def upsert_rate_limit_window(self, window: RateLimitWindow) -> None:
        """Store the window for ``window.upstream``."""
        self._validate_connection()
        self.conn.execute(
            """
            INSERT OR REPLACE INTO rate_limit_windows (upstream, until, window_seconds, strikes)
            VALUES (?, ?, ?, ?)
            """,
            (
                window.upstream,
                self._to_timestamp(window.until),
                window.window_seconds,
                window.strikes,
            ),
        )
