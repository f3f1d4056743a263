"""Client-side progress polling as an explicit state machine.

The PollingNotifier watches a partial fetch result until every requested
item is available. It polls the cache on a fixed interval, re-invokes the
orchestrator when progress stalls or a rate-limit window has passed, and
gives up after a hard ceiling so nothing loops forever in the background.

All timing goes through an injected clock. ``tick()`` performs at most one
step and can be driven directly; ``start()`` / ``stop()`` run the ticks on a
background thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

from reportvault.config.models.scheduling_settings import PollingSettings
from reportvault.core.models import FetchResult, PollResult
from reportvault.shared.clock import Clock, SystemClock
from reportvault.shared.constants import PollingConfig
from reportvault.shared.errors import ReportVaultError
from reportvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)

PollFn = Callable[[int], PollResult]
RefetchFn = Callable[[], FetchResult]
UpdateCallback = Callable[[FetchResult | PollResult], None]


class PollingState(Enum):
    """States of the polling notifier."""

    IDLE = "idle"
    POLLING = "polling"
    BACKING_OFF = "backing_off"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (PollingState.RESOLVED, PollingState.TIMED_OUT, PollingState.STOPPED)


class PollingNotifier:
    """Drives a partial fetch to completion.

    Transitions:
        IDLE -> POLLING when a partial, not rate-limited result is observed
        IDLE -> BACKING_OFF when the result has rate-limited items
        IDLE -> RESOLVED when the result is complete
        POLLING -> RESOLVED when the cached count covers every item
        BACKING_OFF -> (retry) -> POLLING | BACKING_OFF | RESOLVED
        POLLING -> TIMED_OUT after ``timeout`` seconds of polling
        any -> TIMED_OUT when a retry is due and ``max_retries`` are spent
        any -> STOPPED when the owner calls ``stop()``

    Args:
        poll_fn: Returns the current cache state given the last seen count
        refetch_fn: Re-invokes the orchestrator for the same request
        interval: Seconds between polls
        timeout: Hard ceiling in seconds of uninterrupted polling
        max_retries: Orchestrator re-invocations allowed without progress
        rate_limit_backoff: Minimum wait before retrying a rate-limited set
        refetch_after: Re-invoke the orchestrator after this long without progress
        clock: Time source
        on_update: Called with every result that brought new reports
    """

    def __init__(
        self,
        poll_fn: PollFn,
        refetch_fn: RefetchFn,
        *,
        interval: float = PollingConfig.INTERVAL,
        timeout: float = PollingConfig.TIMEOUT,
        max_retries: int = PollingConfig.MAX_RETRIES,
        rate_limit_backoff: float = PollingConfig.RATE_LIMIT_BACKOFF,
        refetch_after: float = PollingConfig.REFETCH_AFTER,
        clock: Clock | None = None,
        on_update: UpdateCallback | None = None,
    ) -> None:
        if interval <= 0 or timeout <= 0:
            msg = "interval and timeout must be positive"
            raise ValueError(msg)
        if max_retries < 0:
            msg = f"max_retries must not be negative, got {max_retries}"
            raise ValueError(msg)

        self.poll_fn = poll_fn
        self.refetch_fn = refetch_fn
        self.interval = interval
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit_backoff = rate_limit_backoff
        self.refetch_after = refetch_after
        self.clock: Clock = clock or SystemClock()
        self.on_update = on_update

        self._state = PollingState.IDLE
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self.total = 0
        self.last_count = 0
        self.retries = 0
        self.started_at: datetime | None = None
        self.polling_since: datetime | None = None
        self.last_progress_at: datetime | None = None
        self.last_refetch_at: datetime | None = None
        self.next_action_at: datetime | None = None
        self.last_result: FetchResult | None = None

    @classmethod
    def from_settings(
        cls,
        settings: PollingSettings,
        poll_fn: PollFn,
        refetch_fn: RefetchFn,
        *,
        clock: Clock | None = None,
        on_update: UpdateCallback | None = None,
    ) -> PollingNotifier:
        return cls(
            poll_fn,
            refetch_fn,
            interval=settings.interval,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            rate_limit_backoff=settings.rate_limit_backoff,
            refetch_after=settings.refetch_after,
            clock=clock,
            on_update=on_update,
        )

    @property
    def state(self) -> PollingState:
        with self._lock:
            return self._state

    def _transition(self, new_state: PollingState) -> None:
        """Move to ``new_state``. Caller holds the lock."""
        if new_state is self._state:
            return
        logger.debug("Polling state %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        if new_state is PollingState.TIMED_OUT:
            logger.warning(
                "Stopped waiting for %d of %d report(s); retry manually",
                max(0, self.total - self.last_count),
                self.total,
            )

    def observe(self, result: FetchResult) -> PollingState:
        """Feed a fetch result and choose the next state.

        Called by the owner with the first result, and internally with the
        result of every retry.
        """
        with self._lock:
            if self._state.is_terminal:
                return self._state

            now = self.clock.now()
            if self.started_at is None:
                self.started_at = now
                self.last_progress_at = now
                self.total = result.summary.total
            elif len(result.reports) > self.last_count:
                self.last_progress_at = now
                self.retries = 0

            self.last_result = result
            self.last_count = max(self.last_count, len(result.reports))

            if not result.partial or self.last_count >= self.total:
                self._transition(PollingState.RESOLVED)
                self.next_action_at = None
            elif result.rate_limited:
                wait = max(self.rate_limit_backoff, result.retry_after or 0.0)
                self.next_action_at = _after(now, wait)
                self._transition(PollingState.BACKING_OFF)
                logger.info("%d item(s) rate limited; retrying in %.0fs", len(result.rate_limited), wait)
            else:
                if self._state is not PollingState.POLLING:
                    self.polling_since = now
                self.next_action_at = _after(now, self.interval)
                self._transition(PollingState.POLLING)
            return self._state

    def tick(self) -> PollingState:
        """Perform the next due step, if any, and return the resulting state."""
        with self._lock:
            if self._state.is_terminal or self._state is PollingState.IDLE:
                return self._state

            now = self.clock.now()
            if (
                self._state is PollingState.POLLING
                and self.polling_since is not None
                and (now - self.polling_since).total_seconds() >= self.timeout
            ):
                self._transition(PollingState.TIMED_OUT)
                return self._state
            if self.next_action_at is not None and now < self.next_action_at:
                return self._state

            if self._state is PollingState.BACKING_OFF:
                self._retry(now)
            else:
                self._poll(now)
            return self._state

    def _poll(self, now: datetime) -> None:
        result = self.poll_fn(self.last_count)
        if result.has_updates and result.count > self.last_count:
            logger.info("Polling found %d new report(s)", result.count - self.last_count)
            self.last_count = result.count
            self.last_progress_at = now
            self.retries = 0
            if self.on_update is not None:
                self.on_update(result)

        if self.last_count >= self.total:
            self._transition(PollingState.RESOLVED)
            self.next_action_at = None
            return

        # Stall counts from the latest progress or refetch
        since = max((t for t in (self.last_progress_at, self.last_refetch_at) if t is not None), default=now)
        stalled_for = (now - since).total_seconds()
        if stalled_for >= self.refetch_after:
            self._retry(now)
        else:
            self.next_action_at = _after(now, self.interval)

    def _retry(self, now: datetime) -> None:
        """Re-invoke the orchestrator, or time out when retries are spent."""
        if self.retries >= self.max_retries:
            self._transition(PollingState.TIMED_OUT)
            return

        self.retries += 1
        self.last_refetch_at = now
        logger.info("Re-invoking fetch (retry %d of %d)", self.retries, self.max_retries)
        try:
            result = self.refetch_fn()
        except ReportVaultError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="polling_refetch",
                additional_context={"retry": self.retries},
            )
            self.next_action_at = _after(now, self.interval)
            return

        if self.on_update is not None and len(result.reports) > self.last_count:
            self.on_update(result)
        self.observe(result)

    def seconds_until_next(self) -> float:
        """Seconds until the next step is due, 0 when due now."""
        with self._lock:
            if self.next_action_at is None:
                return 0.0
            return max(0.0, (self.next_action_at - self.clock.now()).total_seconds())

    # Lifecycle

    def run_until_done(self, sleep: Callable[[float], None] = time.sleep) -> PollingState:
        """Tick in the calling thread until a terminal state is reached."""
        while not self.state.is_terminal and not self._stop_event.is_set():
            if self.state is PollingState.IDLE:
                break
            self.tick()
            if not self.state.is_terminal:
                sleep(self._next_wait())
        return self.state

    def start(self) -> None:
        """Run the ticks on a daemon thread. No-op when already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="polling-notifier", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop polling and wait for the background thread to exit."""
        self._stop_event.set()
        with self._lock:
            if not self._state.is_terminal:
                self._transition(PollingState.STOPPED)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def wait(self, timeout: float | None = None) -> PollingState:
        """Block until the background thread finishes."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.state

    def _next_wait(self) -> float:
        wait = self.seconds_until_next()
        return min(self.interval, wait) if wait > 0 else self.interval

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                state = self.tick()
            except Exception as e:  # noqa: BLE001
                logger.exception("Polling stopped after an unexpected error: %s", e)
                with self._lock:
                    self._transition(PollingState.STOPPED)
                return
            if state.is_terminal or state is PollingState.IDLE:
                return
            self._stop_event.wait(self._next_wait())


def _after(now: datetime, seconds: float) -> datetime:
    return now + timedelta(seconds=seconds)


__all__ = ["PollingNotifier", "PollingState"]
