"""Query operations for the report cache."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

import orjson
from pydantic import ValidationError

from reportvault.core.models import CacheEntry, RateLimitWindow, ReportRecord
from reportvault.services.sqlite_cache.operations.base import BaseOperation
from reportvault.shared.clock import utc_from_timestamp

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = "item_id, record, cached_at"


def _build_cache_entry_from_row(
    item_id: str,
    record_json: str | bytes,
    cached_at: float,
) -> CacheEntry | None:
    """Build a CacheEntry from a database row.

    Rows that no longer decode into a ReportRecord are skipped with a
    warning and behave like a cache miss.
    """
    try:
        record = ReportRecord.model_validate(orjson.loads(record_json))
    except (orjson.JSONDecodeError, ValidationError) as e:
        logger.warning("Skipping unreadable cache row for item %s: %s", item_id, e)
        return None
    return CacheEntry(record=record, cached_at=utc_from_timestamp(cached_at))


class QueryOperations(BaseOperation):
    """Read operations over ``report_cache`` and ``rate_limit_windows``."""

    def get(self, item_id: str, timeframe: str) -> CacheEntry | None:
        """Return the entry for one key, stale or not."""
        self._validate_connection()
        cursor = self.conn.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM report_cache WHERE item_id = ? AND timeframe = ?",
            (item_id, timeframe),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return _build_cache_entry_from_row(*row)

    def get_many(self, item_ids: Sequence[str], timeframe: str) -> dict[str, CacheEntry]:
        """Return entries for every id that has one."""
        self._validate_connection()
        entries: dict[str, CacheEntry] = {}
        unique_ids = list(dict.fromkeys(item_ids))
        for chunk in self._chunked(unique_ids):
            placeholders = ", ".join("?" for _ in chunk)
            cursor = self.conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM report_cache "
                f"WHERE timeframe = ? AND item_id IN ({placeholders})",
                (timeframe, *chunk),
            )
            for row in cursor.fetchall():
                entry = _build_cache_entry_from_row(*row)
                if entry is not None:
                    entries[row[0]] = entry
        return entries

    def list_entries(self, timeframe: str, cached_after: datetime | None = None) -> list[CacheEntry]:
        """Return a timeframe's entries, optionally only those cached after a time."""
        self._validate_connection()
        sql = f"SELECT {_ENTRY_COLUMNS} FROM report_cache WHERE timeframe = ?"
        params: tuple[object, ...] = (timeframe,)
        if cached_after is not None:
            sql += " AND cached_at > ?"
            params += (self._to_timestamp(cached_after),)
        sql += " ORDER BY cached_at, item_id"

        entries = []
        for row in self.conn.execute(sql, params).fetchall():
            entry = _build_cache_entry_from_row(*row)
            if entry is not None:
                entries.append(entry)
        return entries

    def count(self, timeframe: str | None = None, cached_after: datetime | None = None) -> int:
        """Count entries, optionally restricted to a timeframe and a minimum cached_at."""
        self._validate_connection()
        clauses: list[str] = []
        params: list[object] = []
        if timeframe is not None:
            clauses.append("timeframe = ?")
            params.append(timeframe)
        if cached_after is not None:
            clauses.append("cached_at > ?")
            params.append(self._to_timestamp(cached_after))
        sql = "SELECT COUNT(*) FROM report_cache"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        return int(self.conn.execute(sql, params).fetchone()[0])

    def list_timeframes(self) -> list[tuple[str, int, float]]:
        """Return ``(timeframe, entry_count, last_cached_at)`` rows."""
        self._validate_connection()
        cursor = self.conn.execute(
            "SELECT timeframe, COUNT(*), MAX(cached_at) FROM report_cache "
            "GROUP BY timeframe ORDER BY timeframe"
        )
        return [(row[0], int(row[1]), float(row[2])) for row in cursor.fetchall()]

    def load_rate_limit_windows(self, now: datetime) -> list[RateLimitWindow]:
        """Return windows that are active or still within their escalation grace."""
        self._validate_connection()
        cursor = self.conn.execute(
            "SELECT upstream, until, window_seconds, strikes FROM rate_limit_windows "
            "WHERE until + window_seconds > ? ORDER BY upstream",
            (self._to_timestamp(now),),
        )
        return [
            RateLimitWindow(
                upstream=upstream,
                until=utc_from_timestamp(until),
                window_seconds=float(window_seconds),
                strikes=int(strikes),
            )
            for upstream, until, window_seconds, strikes in cursor.fetchall()
        ]
