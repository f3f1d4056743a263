"""Accumulative batch-fetch cache orchestration.

The FetchOrchestrator answers "give me reports for these items" by serving
fresh cache entries directly and fetching everything else through the
BatchScheduler. Results are merged into the cache and returned together with
the ids still pending or rate-limited, so a client can show partial data now
and come back for the rest.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from datetime import datetime
from math import ceil
from typing import Any

from reportvault.config.models.settings import Settings
from reportvault.core.models import (
    CacheEntry,
    FetchResult,
    FetchSource,
    FetchSummary,
    Item,
    PollResult,
    ReportRecord,
)
from reportvault.services.batch_scheduler import BatchScheduler, ScheduleOutcome
from reportvault.services.cache_store import ReportCacheStore
from reportvault.services.merger import merge_record, merge_reports
from reportvault.services.rate_limit_tracker import RateLimitTracker
from reportvault.shared.clock import Clock, SystemClock
from reportvault.shared.constants import BASE_MINUTE, ReportCacheConfig
from reportvault.shared.errors import (
    CacheUnavailableError,
    ErrorContext,
    InvalidItemError,
    OrchestratorError,
)
from reportvault.shared.logging import (
    log_operation_error,
    log_operation_start,
    log_operation_success,
    log_validation_error,
)
from reportvault.shared.protocols import ReportingClientProtocol

logger = logging.getLogger(__name__)

RawItem = Item | dict[str, Any] | str


class FetchOrchestrator:
    """Coordinates cache, scheduler and upstream for one fetch at a time.

    Per-item faults never escape ``fetch``; they show up in the result's
    ``pending``, ``rate_limited`` and ``invalid`` lists. Only a failure of
    the orchestrator itself raises OrchestratorError.

    Example:
        >>> orchestrator = build_orchestrator(get_config())
        >>> result = orchestrator.fetch(["campaign:a1", "journey:j7"], "last-7-days")
        >>> result.summary.source
        'live'
    """

    def __init__(
        self,
        store: ReportCacheStore,
        client: ReportingClientProtocol,
        scheduler: BatchScheduler,
        *,
        upstream: str,
        default_timeframe: str = ReportCacheConfig.DEFAULT_TIMEFRAME,
    ) -> None:
        self.store = store
        self.client = client
        self.scheduler = scheduler
        self.upstream = upstream
        self.default_timeframe = default_timeframe

    @property
    def tracker(self) -> RateLimitTracker:
        return self.scheduler.tracker

    # Fetch

    def fetch(
        self,
        items: RawItem | Iterable[RawItem],
        timeframe: str | None = None,
        force_refresh: bool = False,
    ) -> FetchResult:
        """Return reports for ``items``, fetching what the cache cannot serve.

        Args:
            items: Items as Item, ``{id, kind}`` dicts or ``"kind:id"`` strings.
                A single item may be passed on its own.
            timeframe: Cache namespace; defaults to the configured timeframe
            force_refresh: Bypass (but keep) cached entries

        Returns:
            FetchResult whose reports, pending and rate_limited lists cover
            every valid requested id exactly once

        Raises:
            OrchestratorError: If the orchestrator cannot run at all
        """
        timeframe = timeframe or self.default_timeframe
        try:
            raw_items = [items] if isinstance(items, (str, dict, Item)) else list(items)
            return self._fetch(raw_items, timeframe, force_refresh)
        except OrchestratorError:
            raise
        except Exception as e:
            error = OrchestratorError(
                f"Fetch failed: {e!s}",
                context=ErrorContext(operation="fetch", timeframe=timeframe),
                original_error=e,
            )
            log_operation_error(logger=logger, error=error, operation="fetch")
            raise error from e

    def _fetch(self, raw_items: list[RawItem], timeframe: str, force_refresh: bool) -> FetchResult:
        start = time.perf_counter()
        items, invalid = self.parse_items(raw_items)
        log_operation_start(
            logger,
            "fetch",
            {"items": len(items), "timeframe": timeframe, "force_refresh": force_refresh},
        )

        if not items:
            return FetchResult(
                invalid=invalid,
                summary=FetchSummary(source="cache", fetched=0, total=0),
                message="No valid items requested",
            )

        entries = self._read_cache([item.id for item in items], timeframe)
        now = self.store.now()

        if force_refresh:
            fresh: list[Item] = []
            to_fetch = items
        else:
            fresh = [item for item in items if item.id in entries and self.store.is_fresh(entries[item.id], now)]
            fresh_ids = {item.id for item in fresh}
            to_fetch = [item for item in items if item.id not in fresh_ids]

        if not to_fetch:
            return self._cached_result(fresh, entries, invalid)

        outcome = self.scheduler.run(
            to_fetch,
            lambda batch: self.client.fetch_batch(batch, timeframe),
            self.upstream,
        )

        written = self._write_cache(outcome.succeeded, entries, timeframe)
        reports = merge_reports((entries[item.id].record for item in fresh), written)

        source = self._classify_source(force_refresh, bool(entries), bool(fresh))
        result = self._build_result(reports, outcome, invalid, source, total=len(items), now=now)

        log_operation_success(
            logger=logger,
            operation="fetch",
            duration_ms=(time.perf_counter() - start) * 1000,
            result_info={
                "source": source,
                "fetched": len(result.reports),
                "pending": len(result.pending),
                "rate_limited": len(result.rate_limited),
                "invalid": len(result.invalid),
            },
            context={"timeframe": timeframe},
        )
        return result

    def parse_items(self, raw_items: Sequence[RawItem]) -> tuple[list[Item], list[str]]:
        """Validate and de-duplicate raw items.

        Returns:
            ``(items, invalid_ids)``; the first occurrence of an id wins
        """
        items: list[Item] = []
        invalid: list[str] = []
        seen: set[str] = set()
        for raw in raw_items:
            try:
                item = Item.parse(raw)
            except InvalidItemError as e:
                log_validation_error(logger, field="item", value=raw, reason=e.message)
                invalid.extend(e.item_ids)
                continue
            if item.id in seen:
                logger.debug("Ignoring duplicate item %s", item.id)
                continue
            seen.add(item.id)
            items.append(item)
        if invalid:
            logger.warning("Filtered out %d invalid item(s)", len(invalid))
        return items, invalid

    def _read_cache(self, item_ids: list[str], timeframe: str) -> dict[str, CacheEntry]:
        try:
            return self.store.get_many(item_ids, timeframe)
        except CacheUnavailableError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="fetch",
                additional_context={"fallback": "treat_all_uncached"},
                level=logging.WARNING,
            )
            return {}

    def _write_cache(
        self,
        records: Sequence[ReportRecord],
        entries: dict[str, CacheEntry],
        timeframe: str,
    ) -> list[ReportRecord]:
        """Merge new records over cached ones and store them.

        A failed write is logged; the merged records are returned either way.
        """
        merged = [
            merge_record(entries[record.id].record if record.id in entries else None, record)
            for record in records
        ]
        if not merged:
            return merged
        try:
            self.store.put_many(timeframe, merged)
        except CacheUnavailableError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="fetch",
                additional_context={"records": len(merged)},
            )
        return merged

    def _cached_result(
        self,
        fresh: list[Item],
        entries: dict[str, CacheEntry],
        invalid: list[str],
    ) -> FetchResult:
        cached = [entries[item.id] for item in fresh]
        logger.info("Serving %d report(s) from cache", len(cached))
        return FetchResult(
            reports=[entry.record for entry in cached],
            invalid=invalid,
            partial=False,
            summary=FetchSummary(
                source="cache",
                fetched=len(cached),
                total=len(fresh),
                last_updated=max(entry.cached_at for entry in cached),
            ),
            message="Using cached data",
        )

    @staticmethod
    def _classify_source(force_refresh: bool, had_cache: bool, had_fresh: bool) -> FetchSource:
        if force_refresh and had_cache:
            return "cache_refreshing"
        if had_fresh:
            return "partial_cache"
        return "live"

    def _build_result(
        self,
        reports: list[ReportRecord],
        outcome: ScheduleOutcome,
        invalid: list[str],
        source: FetchSource,
        *,
        total: int,
        now: datetime,
    ) -> FetchResult:
        rate_limited = list(outcome.rate_limited_ids)
        pending = list(outcome.unattempted_ids)
        retry_after = self.tracker.remaining(self.upstream) if rate_limited else None

        return FetchResult(
            reports=reports,
            pending=pending,
            rate_limited=rate_limited,
            invalid=invalid + outcome.invalid_ids,
            partial=bool(pending or rate_limited),
            summary=FetchSummary(
                source=source,
                fetched=len(reports),
                total=total,
                last_updated=now,
            ),
            message=self._message(len(reports), total, pending, rate_limited, retry_after),
            retry_after=retry_after,
        )

    @staticmethod
    def _message(
        fetched: int,
        total: int,
        pending: list[str],
        rate_limited: list[str],
        retry_after: float | None,
    ) -> str:
        if rate_limited:
            minutes = max(1, ceil((retry_after or 0) / BASE_MINUTE))
            return (
                f"{len(rate_limited)} items are rate limited. "
                f"Please wait ~{minutes} minutes before retrying."
            )
        if pending:
            return f"Loaded {fetched} of {total} reports; {len(pending)} still loading."
        return f"Loaded {fetched} reports."

    # Poll

    def poll(
        self,
        timeframe: str | None = None,
        last_count: int = 0,
        item_ids: Sequence[str] | None = None,
    ) -> PollResult:
        """Report what is cached and fresh right now.

        Args:
            timeframe: Cache namespace
            last_count: Count the caller saw last time
            item_ids: Restrict the answer to these ids

        Returns:
            PollResult with ``has_updates`` set when the count grew
        """
        timeframe = timeframe or self.default_timeframe
        try:
            if item_ids:
                entries = self.store.get_many(list(item_ids), timeframe)
                now = self.store.now()
                records = [
                    entries[item_id].record
                    for item_id in dict.fromkeys(item_ids)
                    if item_id in entries and self.store.is_fresh(entries[item_id], now)
                ]
            else:
                records = self.store.list_records(timeframe, fresh_only=True)
        except CacheUnavailableError as e:
            log_operation_error(logger=logger, error=e, operation="poll", level=logging.WARNING)
            return PollResult(has_updates=False, count=last_count, message="Cache unavailable")

        count = len(records)
        has_updates = count > last_count
        message = f"Found {count - last_count} new report(s)" if has_updates else "No new reports"
        return PollResult(has_updates=has_updates, reports=records, count=count, message=message)

    # Administration

    def clear_cache(self, timeframe: str | None = None) -> bool:
        """Remove cached reports for one timeframe or all. Idempotent."""
        try:
            removed = self.store.clear(timeframe)
        except CacheUnavailableError as e:
            log_operation_error(logger=logger, error=e, operation="clear_cache")
            return False
        logger.info("Cleared %d cached report(s)", removed)
        return True

    def clear_rate_limits(self, upstream: str | None = None) -> bool:
        """Remove rate-limit windows for one upstream or all. Idempotent."""
        try:
            self.tracker.clear(upstream)
        except CacheUnavailableError as e:
            log_operation_error(logger=logger, error=e, operation="clear_rate_limits")
            return False
        return True

    def cached_reports(self, timeframe: str | None = None, *, fresh_only: bool = True) -> list[ReportRecord]:
        return self.store.list_records(timeframe or self.default_timeframe, fresh_only=fresh_only)

    def list_timeframes(self) -> list[dict[str, Any]]:
        return self.store.list_timeframes()

    def cache_info(self) -> dict[str, Any]:
        return self.store.get_cache_info()

    def rate_limit_status(self) -> dict[str, Any]:
        return self.tracker.get_stats()

    def close(self) -> None:
        close_client = getattr(self.client, "close", None)
        if callable(close_client):
            close_client()
        self.store.close()


def build_orchestrator(
    settings: Settings,
    client: ReportingClientProtocol | None = None,
    clock: Clock | None = None,
    sleep: Any = time.sleep,
) -> FetchOrchestrator:
    """Wire a FetchOrchestrator from settings.

    Raises:
        OrchestratorError: If the report cache cannot be opened
    """
    from reportvault.services.upstream.http_client import HttpReportingClient

    clock = clock or SystemClock()
    try:
        store = ReportCacheStore(settings.cache.db_path, ttl=settings.cache.ttl, clock=clock)
    except CacheUnavailableError as e:
        raise OrchestratorError(
            "Report cache is unavailable",
            context=ErrorContext(
                operation="build_orchestrator",
                additional_data={"db_path": str(settings.cache.db_path)},
            ),
            original_error=e,
        ) from e

    tracker = RateLimitTracker(
        default_backoff=settings.rate_limit.default_backoff,
        max_backoff=settings.rate_limit.max_backoff,
        clock=clock,
        store=store if settings.rate_limit.persist else None,
    )
    scheduler = BatchScheduler(
        tracker,
        batch_size=settings.scheduler.batch_size,
        inter_batch_delay=settings.scheduler.inter_batch_delay,
        error_delay=settings.scheduler.error_delay,
        max_batches=settings.scheduler.max_batches_per_request,
        sleep=sleep,
    )
    if client is None:
        client = HttpReportingClient(settings.upstream, clock=clock, sleep=sleep)

    return FetchOrchestrator(
        store,
        client,
        scheduler,
        upstream=settings.upstream.name,
        default_timeframe=settings.cache.default_timeframe,
    )


__all__ = ["FetchOrchestrator", "RawItem", "build_orchestrator"]
