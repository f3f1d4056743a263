"""SQLite-backed report cache.

Maps ``(item_id, timeframe)`` to the last successfully fetched ReportRecord
and the store-clock time it was written. Freshness is classified at read
time against a fixed TTL; entries are only ever removed by ``clear``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from reportvault.core.models import CacheEntry, RateLimitWindow, ReportRecord, is_fresh
from reportvault.services.sqlite_cache.migration.manager import MigrationManager
from reportvault.services.sqlite_cache.operations.insert import InsertOperations
from reportvault.services.sqlite_cache.operations.query import QueryOperations
from reportvault.services.sqlite_cache.operations.update import UpdateOperations
from reportvault.services.sqlite_cache.transaction.manager import TransactionManager
from reportvault.shared.clock import Clock, SystemClock, utc_from_timestamp
from reportvault.shared.constants import ReportCacheConfig
from reportvault.shared.errors import CacheUnavailableError, ErrorCode, ErrorContext
from reportvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class ReportCacheStore:
    """Durable report cache with TTL-based freshness.

    One SQLite connection in WAL mode is shared by all threads; a lock
    serializes statements so every put is atomic per key and reads never
    observe a half-written row.

    Attributes:
        db_path: Path to the SQLite database file
        ttl: Freshness window

    Example:
        >>> store = ReportCacheStore(Path("cache.db"))
        >>> store.put("abc", "all-time", record)
        >>> entry = store.get("abc", "all-time")
        >>> store.is_fresh(entry)
        True
        >>> store.close()
    """

    def __init__(
        self,
        db_path: Path | str,
        ttl: timedelta = timedelta(seconds=ReportCacheConfig.DEFAULT_TTL),
        clock: Clock | None = None,
    ) -> None:
        """Open (and create if needed) the cache database.

        Args:
            db_path: SQLite file, or ":memory:"
            ttl: Freshness window
            clock: Time source for cached_at and freshness checks

        Raises:
            CacheUnavailableError: If the database cannot be opened
        """
        self.db_path = Path(db_path) if str(db_path) != IN_MEMORY else None
        self.ttl = ttl
        self.clock: Clock = clock or SystemClock()
        self.conn: sqlite3.Connection | None = None
        self.schema_version = 0
        self._lock = threading.RLock()
        self._initialize_db(str(db_path))

    def _initialize_db(self, target: str) -> None:
        context = ErrorContext(
            operation="initialize_db",
            additional_data={"db_path": target},
        )
        start = time.perf_counter()

        try:
            if self.db_path is not None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self.conn = sqlite3.connect(
                target,
                check_same_thread=False,
                isolation_level=None,
            )
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")

            migrations = MigrationManager(self.conn)
            migrations.create_tables()
            if not migrations.validate_schema():
                raise CacheUnavailableError(
                    "Report cache schema is incomplete",
                    code=ErrorCode.CACHE_CORRUPTED,
                    context=context,
                )
            self.schema_version = migrations.get_current_version()

            self._query_ops = QueryOperations(self.conn)
            self._insert_ops = InsertOperations(self.conn)
            self._update_ops = UpdateOperations(self.conn)
            self._transactions = TransactionManager(self.conn)

            log_operation_success(
                logger=logger,
                operation="initialize_db",
                duration_ms=(time.perf_counter() - start) * 1000,
                context=context.additional_data,
            )
        except (sqlite3.Error, OSError) as e:
            error = CacheUnavailableError(
                f"Failed to open report cache: {e!s}",
                context=context,
                original_error=e,
            )
            log_operation_error(logger=logger, error=error, operation="initialize_db")
            raise error from e

    def _require_open(self, operation: str) -> None:
        if self.conn is None:
            raise CacheUnavailableError(
                "Report cache is closed",
                context=ErrorContext(operation=operation),
            )

    def _read_error(self, operation: str, error: sqlite3.Error, timeframe: str | None) -> CacheUnavailableError:
        return CacheUnavailableError(
            f"Cache read failed: {error!s}",
            code=ErrorCode.CACHE_READ_FAILED,
            context=ErrorContext(operation=operation, timeframe=timeframe),
            original_error=error,
        )

    def _write_error(self, operation: str, error: sqlite3.Error, timeframe: str | None) -> CacheUnavailableError:
        return CacheUnavailableError(
            f"Cache write failed: {error!s}",
            code=ErrorCode.CACHE_WRITE_FAILED,
            context=ErrorContext(operation=operation, timeframe=timeframe),
            original_error=error,
        )

    # Freshness

    def now(self) -> datetime:
        return self.clock.now()

    def is_fresh(self, entry: CacheEntry, now: datetime | None = None) -> bool:
        """Whether ``entry`` is within the TTL at ``now`` (default: store clock)."""
        return is_fresh(entry, now or self.clock.now(), self.ttl)

    def _fresh_cutoff(self) -> datetime:
        return self.clock.now() - self.ttl

    # Reads

    def get(self, item_id: str, timeframe: str) -> CacheEntry | None:
        """Return the entry for one key regardless of freshness.

        Raises:
            CacheUnavailableError: If the database cannot be read
        """
        self._require_open("get")
        with self._lock:
            try:
                return self._query_ops.get(item_id, timeframe)
            except sqlite3.Error as e:
                raise self._read_error("get", e, timeframe) from e

    def get_many(self, item_ids: Sequence[str], timeframe: str) -> dict[str, CacheEntry]:
        """Return entries for all ids that have one.

        Raises:
            CacheUnavailableError: If the database cannot be read
        """
        if not item_ids:
            return {}
        self._require_open("get_many")
        with self._lock:
            try:
                return self._query_ops.get_many(item_ids, timeframe)
            except sqlite3.Error as e:
                raise self._read_error("get_many", e, timeframe) from e

    def list_records(self, timeframe: str, *, fresh_only: bool = True) -> list[ReportRecord]:
        """Return the records cached for a timeframe, oldest write first."""
        self._require_open("list_records")
        cutoff = self._fresh_cutoff() if fresh_only else None
        with self._lock:
            try:
                entries = self._query_ops.list_entries(timeframe, cached_after=cutoff)
            except sqlite3.Error as e:
                raise self._read_error("list_records", e, timeframe) from e
        return [entry.record for entry in entries]

    def count(self, timeframe: str | None = None, *, fresh_only: bool = True) -> int:
        """Count cached entries, by default only the fresh ones."""
        self._require_open("count")
        cutoff = self._fresh_cutoff() if fresh_only else None
        with self._lock:
            try:
                return self._query_ops.count(timeframe, cached_after=cutoff)
            except sqlite3.Error as e:
                raise self._read_error("count", e, timeframe) from e

    def list_timeframes(self) -> list[dict[str, Any]]:
        """Return one ``{timeframe, count, last_cached_at}`` dict per cached timeframe."""
        self._require_open("list_timeframes")
        with self._lock:
            try:
                rows = self._query_ops.list_timeframes()
            except sqlite3.Error as e:
                raise self._read_error("list_timeframes", e, None) from e
        return [
            {
                "timeframe": timeframe,
                "count": count,
                "last_cached_at": utc_from_timestamp(last_cached_at),
            }
            for timeframe, count, last_cached_at in rows
        ]

    def get_cache_info(self) -> dict[str, Any]:
        """Return totals and the database location."""
        total = self.count(fresh_only=False)
        fresh = self.count(fresh_only=True)
        return {
            "db_path": str(self.db_path) if self.db_path else IN_MEMORY,
            "total_entries": total,
            "fresh_entries": fresh,
            "stale_entries": total - fresh,
            "ttl_seconds": int(self.ttl.total_seconds()),
            "schema_version": self.schema_version,
            "timeframes": len(self.list_timeframes()),
        }

    # Writes

    def put(self, item_id: str, timeframe: str, record: ReportRecord) -> CacheEntry:
        """Replace the entry for one key, stamping it with the store clock.

        Raises:
            CacheUnavailableError: If the write fails
            ValueError: If ``item_id`` does not match ``record.id``
        """
        if record.id != item_id:
            msg = f"record id {record.id!r} does not match key {item_id!r}"
            raise ValueError(msg)
        self._require_open("put")
        with self._lock:
            cached_at = self.clock.now()
            try:
                self._insert_ops.upsert_record(record, timeframe, cached_at)
            except sqlite3.Error as e:
                raise self._write_error("put", e, timeframe) from e
        return CacheEntry(record=record, cached_at=cached_at)

    def put_many(self, timeframe: str, records: Iterable[ReportRecord]) -> int:
        """Store several records in one transaction.

        Returns:
            Number of records written

        Raises:
            CacheUnavailableError: If the write fails; nothing is written then
        """
        batch = list(records)
        if not batch:
            return 0
        self._require_open("put_many")
        with self._lock:
            cached_at = self.clock.now()
            try:
                with self._transactions.transaction():
                    for record in batch:
                        self._insert_ops.upsert_record(record, timeframe, cached_at)
            except sqlite3.Error as e:
                raise self._write_error("put_many", e, timeframe) from e
        return len(batch)

    def clear(self, timeframe: str | None = None) -> int:
        """Remove one timeframe's entries, or every entry.

        Returns:
            Number of removed entries
        """
        self._require_open("clear")
        with self._lock:
            try:
                return self._update_ops.clear(timeframe)
            except sqlite3.Error as e:
                raise self._write_error("clear", e, timeframe) from e

    # Rate-limit window persistence

    def load_rate_limit_windows(self, now: datetime) -> list[RateLimitWindow]:
        self._require_open("load_rate_limit_windows")
        with self._lock:
            try:
                return self._query_ops.load_rate_limit_windows(now)
            except sqlite3.Error as e:
                raise self._read_error("load_rate_limit_windows", e, None) from e

    def save_rate_limit_window(self, window: RateLimitWindow) -> None:
        self._require_open("save_rate_limit_window")
        with self._lock:
            try:
                self._insert_ops.upsert_rate_limit_window(window)
            except sqlite3.Error as e:
                raise self._write_error("save_rate_limit_window", e, None) from e

    def delete_rate_limit_windows(self, upstream: str | None = None) -> int:
        self._require_open("delete_rate_limit_windows")
        with self._lock:
            try:
                return self._update_ops.delete_rate_limit_windows(upstream)
            except sqlite3.Error as e:
                raise self._write_error("delete_rate_limit_windows", e, None) from e

    # Lifecycle

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Closed report cache connection: %s", self.db_path or IN_MEMORY)

    def __enter__(self) -> ReportCacheStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["ReportCacheStore"]
