"""Sequential batch scheduling against a rate-limited upstream.

This module provides the BatchScheduler class that splits an item list into
bounded batches, issues them one at a time with a pause in between, and
classifies every item as succeeded, rate-limited, unattempted or invalid.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from reportvault.core.models import Item, ReportRecord
from reportvault.services.rate_limit_tracker import RateLimitTracker
from reportvault.shared.constants import BatchConfig
from reportvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    InvalidItemError,
    RateLimitError,
    ReportVaultError,
    TransientError,
)
from reportvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

FetchBatch = Callable[[Sequence[Item]], list[ReportRecord]]


@dataclass
class ScheduleOutcome:
    """Classification of every scheduled item.

    Each input id appears in exactly one of the four groups.

    Attributes:
        succeeded: Records fetched in this run
        rate_limited_ids: Ids withheld or rejected because of a rate limit
        unattempted_ids: Ids to retry soon (transient failure or over budget)
        invalid_ids: Ids the upstream rejected as malformed or unknown
        batches_attempted: Upstream calls issued

    Example:
        >>> outcome = scheduler.run(items, client_fetch, "reporting")
        >>> print(f"{len(outcome.succeeded)} fetched, {len(outcome.unattempted_ids)} pending")
    """

    succeeded: list[ReportRecord] = field(default_factory=list)
    rate_limited_ids: list[str] = field(default_factory=list)
    unattempted_ids: list[str] = field(default_factory=list)
    invalid_ids: list[str] = field(default_factory=list)
    batches_attempted: int = 0

    @property
    def succeeded_ids(self) -> list[str]:
        return [record.id for record in self.succeeded]


class BatchScheduler:
    """Issues upstream calls in bounded, strictly sequential batches.

    Attributes:
        batch_size: Maximum items per upstream call
        inter_batch_delay: Pause after a batch that went through, in seconds
        error_delay: Pause after a batch that failed, in seconds
        max_batches: Calls issued per run; 0 means no limit

    Example:
        >>> scheduler = BatchScheduler(tracker, batch_size=10)
        >>> outcome = scheduler.run(items, lambda batch: client.fetch_batch(batch, "all-time"), "reporting")
    """

    def __init__(
        self,
        tracker: RateLimitTracker,
        batch_size: int = BatchConfig.DEFAULT_SIZE,
        inter_batch_delay: float = BatchConfig.INTER_BATCH_DELAY,
        error_delay: float = BatchConfig.ERROR_DELAY,
        max_batches: int = BatchConfig.MAX_BATCHES_PER_REQUEST,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the scheduler.

        Raises:
            ValueError: If batch_size is less than 1 or a delay is negative
        """
        if batch_size < 1:
            msg = f"batch_size must be at least 1, got {batch_size}"
            raise ValueError(msg)
        if inter_batch_delay < 0 or error_delay < 0:
            msg = "delays must not be negative"
            raise ValueError(msg)
        if max_batches < 0:
            msg = f"max_batches must not be negative, got {max_batches}"
            raise ValueError(msg)

        self.tracker = tracker
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.error_delay = error_delay
        self.max_batches = max_batches
        self._sleep = sleep

    def chunk(self, items: Sequence[Item]) -> list[list[Item]]:
        """Split items into consecutive batches of at most ``batch_size``."""
        return [list(items[i : i + self.batch_size]) for i in range(0, len(items), self.batch_size)]

    def run(self, items: Sequence[Item], fetch_batch: FetchBatch, upstream: str) -> ScheduleOutcome:
        """Fetch ``items`` batch by batch.

        Before each batch the tracker is consulted; an active window marks
        every remaining id rate-limited and ends the run. A RateLimitError
        opens a window and does the same. A TransientError defers only its
        own batch and the run continues after ``error_delay``.

        Args:
            items: Items to fetch; duplicates by id are fetched once
            fetch_batch: Callable issuing one upstream call
            upstream: Upstream name used for rate-limit windows

        Returns:
            ScheduleOutcome covering every distinct input id
        """
        outcome = ScheduleOutcome()
        first_seen: dict[str, Item] = {}
        for item in items:
            first_seen.setdefault(item.id, item)
        unique = list(first_seen.values())
        if not unique:
            return outcome

        start = time.perf_counter()
        batches = self.chunk(unique)
        budget = self.max_batches or len(batches)
        previous_failed = False

        for index, batch in enumerate(batches):
            if outcome.batches_attempted >= budget:
                deferred = _ids(batches[index:])
                outcome.unattempted_ids.extend(deferred)
                logger.info(
                    "Batch budget of %d reached; %d item(s) left pending",
                    budget,
                    len(deferred),
                )
                break

            if outcome.batches_attempted > 0:
                self._sleep(self.error_delay if previous_failed else self.inter_batch_delay)

            if self.tracker.is_limited(upstream):
                limited = _ids(batches[index:])
                outcome.rate_limited_ids.extend(limited)
                logger.warning(
                    "%s is rate limited; withholding %d item(s)",
                    upstream,
                    len(limited),
                    extra={"operation": "schedule_batches", "context": {"upstream": upstream}},
                )
                break

            outcome.batches_attempted += 1
            batch_ids = [item.id for item in batch]

            try:
                records = fetch_batch(batch)
            except RateLimitError as e:
                self.tracker.record_limit(upstream, e.retry_after)
                done = self._accept(e.partial_records, batch_ids, outcome)
                outcome.rate_limited_ids.extend(i for i in batch_ids if i not in done)
                outcome.rate_limited_ids.extend(_ids(batches[index + 1 :]))
                self._log_batch_error(e, index, batch_ids, level=logging.WARNING)
                break
            except TransientError as e:
                done = self._accept(e.partial_records, batch_ids, outcome)
                outcome.unattempted_ids.extend(i for i in batch_ids if i not in done)
                self._log_batch_error(e, index, batch_ids, level=logging.WARNING)
                previous_failed = True
                continue
            except InvalidItemError as e:
                done = self._accept(e.partial_records, batch_ids, outcome)
                rejected_ids = set(e.item_ids)
                rejected = [i for i in batch_ids if i in rejected_ids and i not in done]
                outcome.invalid_ids.extend(rejected)
                outcome.unattempted_ids.extend(
                    i for i in batch_ids if i not in done and i not in rejected
                )
                self._log_batch_error(e, index, batch_ids, level=logging.WARNING)
                previous_failed = False
                continue
            except ReportVaultError as e:
                outcome.unattempted_ids.extend(batch_ids)
                self._log_batch_error(e, index, batch_ids)
                previous_failed = True
                continue
            except Exception as e:  # noqa: BLE001
                outcome.unattempted_ids.extend(batch_ids)
                wrapped = InfrastructureError(
                    code=ErrorCode.SCHEDULER_FAILED,
                    message=f"Unexpected error in batch {index}: {e!s}",
                    context=ErrorContext(operation="schedule_batches"),
                    original_error=e,
                )
                self._log_batch_error(wrapped, index, batch_ids)
                previous_failed = True
                continue

            done = self._accept(records, batch_ids, outcome)
            missing = [i for i in batch_ids if i not in done]
            if missing:
                logger.warning(
                    "Upstream returned no record for %d item(s) in batch %d",
                    len(missing),
                    index,
                )
                outcome.unattempted_ids.extend(missing)
            previous_failed = False

        log_operation_success(
            logger=logger,
            operation="schedule_batches",
            duration_ms=(time.perf_counter() - start) * 1000,
            result_info={
                "batches": outcome.batches_attempted,
                "succeeded": len(outcome.succeeded),
                "rate_limited": len(outcome.rate_limited_ids),
                "unattempted": len(outcome.unattempted_ids),
                "invalid": len(outcome.invalid_ids),
            },
            context={"upstream": upstream},
        )
        return outcome

    def _accept(
        self,
        records: Sequence[ReportRecord],
        batch_ids: Sequence[str],
        outcome: ScheduleOutcome,
    ) -> set[str]:
        """Append records that belong to this batch; return the accepted ids."""
        expected = set(batch_ids)
        accepted: set[str] = set()
        for record in records:
            if record.id not in expected:
                logger.warning("Ignoring record for unrequested item %s", record.id)
                continue
            if record.id in accepted:
                continue
            accepted.add(record.id)
            outcome.succeeded.append(record)
        return accepted

    def _log_batch_error(
        self,
        error: ReportVaultError,
        index: int,
        batch_ids: Sequence[str],
        level: int = logging.ERROR,
    ) -> None:
        log_operation_error(
            logger=logger,
            operation="schedule_batches",
            error=error,
            additional_context={"batch_index": index, "batch_size": len(batch_ids)},
            level=level,
        )


def _ids(batches: Sequence[Sequence[Item]]) -> list[str]:
    return [item.id for batch in batches for item in batch]


__all__ = ["BatchScheduler", "FetchBatch", "ScheduleOutcome"]
