"""Tests for the PollingNotifier state machine."""

from __future__ import annotations

import pytest

from reportvault.config.models.scheduling_settings import PollingSettings
from reportvault.core.models import FetchResult, FetchSummary, PollResult
from reportvault.services.polling_notifier import PollingNotifier, PollingState
from reportvault.shared.errors import OrchestratorError


@pytest.fixture
def fetch_result(make_record):
    """Factory for FetchResults with ``fetched`` of ``total`` reports."""

    def _make(fetched: int, total: int, *, rate_limited: int = 0, retry_after: float | None = None) -> FetchResult:
        missing = [f"c{i}" for i in range(fetched, total)]
        limited = missing[:rate_limited]
        return FetchResult(
            reports=[make_record(f"c{i}") for i in range(fetched)],
            pending=missing[rate_limited:],
            rate_limited=limited,
            partial=fetched < total,
            summary=FetchSummary(source="live", fetched=fetched, total=total),
            retry_after=retry_after,
        )

    return _make


class StubCache:
    """poll_fn whose count is set by the test."""

    def __init__(self) -> None:
        self.count = 0
        self.calls = 0

    def __call__(self, last_count: int) -> PollResult:
        self.calls += 1
        return PollResult(has_updates=self.count > last_count, count=self.count)


@pytest.fixture
def cache() -> StubCache:
    return StubCache()


def make_notifier(clock, cache, refetch, **kwargs) -> PollingNotifier:
    options = {
        "interval": 5,
        "timeout": 1000,
        "max_retries": 3,
        "rate_limit_backoff": 60,
        "refetch_after": 1000,
    }
    options.update(kwargs)
    return PollingNotifier(cache, refetch, clock=clock, **options)


def never_called():
    raise AssertionError("refetch_fn should not be called")


class TestPollingNotifierInit:
    """Construction."""

    @pytest.mark.parametrize(
        "kwargs",
        [{"interval": 0}, {"timeout": -1}, {"max_retries": -1}],
    )
    def test_invalid_arguments(self, clock, cache, kwargs):
        """Non-positive timings and negative retries are rejected."""
        with pytest.raises(ValueError):
            make_notifier(clock, cache, never_called, **kwargs)

    def test_from_settings(self, clock, cache):
        """Values come from PollingSettings."""
        settings = PollingSettings(interval=2, timeout=30, max_retries=1, rate_limit_backoff=90, refetch_after=20)

        notifier = PollingNotifier.from_settings(settings, cache, never_called, clock=clock)

        assert notifier.interval == 2
        assert notifier.timeout == 30
        assert notifier.max_retries == 1
        assert notifier.rate_limit_backoff == 90
        assert notifier.refetch_after == 20

    def test_idle_tick_does_nothing(self, clock, cache):
        """Nothing happens before the first result is observed."""
        notifier = make_notifier(clock, cache, never_called)

        assert notifier.tick() is PollingState.IDLE
        assert cache.calls == 0


class TestPollingNotifierPolling:
    """POLLING behaviour."""

    def test_complete_result_resolves_immediately(self, clock, cache, fetch_result):
        """A non-partial result needs no polling."""
        notifier = make_notifier(clock, cache, never_called)

        assert notifier.observe(fetch_result(5, 5)) is PollingState.RESOLVED
        assert notifier.tick() is PollingState.RESOLVED
        assert cache.calls == 0

    def test_polls_on_interval_until_resolved(self, clock, cache, fetch_result):
        """Polls only when due and resolves once every report is cached."""
        # Given
        updates = []
        notifier = PollingNotifier(
            cache, never_called, interval=5, timeout=1000, clock=clock, on_update=updates.append
        )
        notifier.observe(fetch_result(2, 5))

        # When: not yet due
        clock.advance(4)
        notifier.tick()

        # Then
        assert cache.calls == 0

        # When: due, partial progress
        cache.count = 4
        clock.advance(1)
        assert notifier.tick() is PollingState.POLLING
        assert notifier.last_count == 4
        assert len(updates) == 1

        # When: due, complete
        cache.count = 5
        clock.advance(5)
        assert notifier.tick() is PollingState.RESOLVED
        assert len(updates) == 2

    def test_no_update_callback_without_progress(self, clock, cache, fetch_result):
        """A poll that finds nothing new is silent."""
        updates = []
        notifier = PollingNotifier(cache, never_called, interval=5, clock=clock, on_update=updates.append)
        notifier.observe(fetch_result(2, 5))
        cache.count = 2

        clock.advance(5)
        notifier.tick()

        assert updates == []

    def test_times_out_after_ceiling(self, clock, cache, fetch_result):
        """Polling without completion stops at the timeout."""
        notifier = make_notifier(clock, cache, never_called, timeout=20)
        notifier.observe(fetch_result(1, 5))

        states = []
        for _ in range(4):
            clock.advance(5)
            states.append(notifier.tick())

        assert states[-1] is PollingState.TIMED_OUT
        assert PollingState.TIMED_OUT not in states[:-1]

    def test_stall_triggers_refetch(self, clock, cache, fetch_result):
        """No progress for refetch_after seconds re-invokes the fetch."""
        refetches = []

        def refetch():
            refetches.append(clock.now())
            return fetch_result(5, 5)

        notifier = make_notifier(clock, cache, refetch, refetch_after=10)
        notifier.observe(fetch_result(2, 5))

        clock.advance(5)
        notifier.tick()
        assert refetches == []

        clock.advance(5)
        assert notifier.tick() is PollingState.RESOLVED
        assert len(refetches) == 1

    def test_gives_up_after_max_retries(self, clock, cache, fetch_result):
        """Refetches that never make progress end in TIMED_OUT."""
        calls = []

        def refetch():
            calls.append(1)
            return fetch_result(2, 5)

        notifier = make_notifier(clock, cache, refetch, refetch_after=10, max_retries=1)
        notifier.observe(fetch_result(2, 5))

        state = notifier.state
        for _ in range(5):
            clock.advance(5)
            state = notifier.tick()

        assert state is PollingState.TIMED_OUT
        assert len(calls) == 1

    def test_refetches_are_spaced_by_refetch_after(self, clock, cache, fetch_result):
        """A stalled set is re-fetched once per refetch_after, not once per poll."""
        started = clock.now()
        refetched_at = []

        def refetch():
            refetched_at.append((clock.now() - started).total_seconds())
            return fetch_result(2, 5)

        notifier = make_notifier(clock, cache, refetch, timeout=300, refetch_after=120, max_retries=3)
        notifier.observe(fetch_result(2, 5))

        state = notifier.state
        while not state.is_terminal:
            clock.advance(5)
            state = notifier.tick()

        assert refetched_at == [120.0, 240.0]
        assert state is PollingState.TIMED_OUT
        assert (clock.now() - started).total_seconds() == 300.0

    def test_progress_resets_retries(self, clock, cache, fetch_result):
        """A poll that finds new reports gives the retries back."""
        notifier = make_notifier(clock, cache, never_called)
        notifier.observe(fetch_result(1, 5))
        notifier.retries = 2

        cache.count = 3
        clock.advance(5)
        notifier.tick()

        assert notifier.retries == 0


class TestPollingNotifierBackoff:
    """BACKING_OFF behaviour."""

    def test_waits_for_retry_after(self, clock, cache, fetch_result):
        """A rate-limited set is retried only when the window has passed."""
        refetches = []

        def refetch():
            refetches.append(clock.now())
            return fetch_result(5, 5)

        notifier = make_notifier(clock, cache, refetch, rate_limit_backoff=60, timeout=100)
        assert notifier.observe(fetch_result(2, 5, rate_limited=3, retry_after=300)) is PollingState.BACKING_OFF
        assert notifier.seconds_until_next() == pytest.approx(300)

        clock.advance(299)
        assert notifier.tick() is PollingState.BACKING_OFF
        assert refetches == []

        clock.advance(1)
        assert notifier.tick() is PollingState.RESOLVED
        assert len(refetches) == 1
        assert cache.calls == 0

    def test_minimum_backoff_applies(self, clock, cache, fetch_result):
        """A short retry_after is stretched to rate_limit_backoff."""
        notifier = make_notifier(clock, cache, never_called, rate_limit_backoff=60)

        notifier.observe(fetch_result(0, 5, rate_limited=5, retry_after=10))

        assert notifier.seconds_until_next() == pytest.approx(60)

    def test_failed_refetch_is_rescheduled(self, clock, cache, fetch_result):
        """An orchestrator failure during a retry keeps the notifier alive."""
        results = [OrchestratorError("cache gone"), fetch_result(5, 5)]

        def refetch():
            outcome = results.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        notifier = make_notifier(clock, cache, refetch, rate_limit_backoff=60)
        notifier.observe(fetch_result(0, 5, rate_limited=5))

        clock.advance(60)
        assert notifier.tick() is PollingState.BACKING_OFF
        assert notifier.seconds_until_next() == pytest.approx(5)

        clock.advance(5)
        assert notifier.tick() is PollingState.RESOLVED

    def test_still_limited_backs_off_again(self, clock, cache, fetch_result):
        """A retry that is rate limited again waits another window."""
        notifier = make_notifier(
            clock,
            cache,
            lambda: fetch_result(0, 5, rate_limited=5, retry_after=120),
            rate_limit_backoff=60,
        )
        notifier.observe(fetch_result(0, 5, rate_limited=5))

        clock.advance(60)
        notifier.tick()

        assert notifier.state is PollingState.BACKING_OFF
        assert notifier.retries == 1
        assert notifier.seconds_until_next() == pytest.approx(120)


class TestPollingNotifierLifecycle:
    """stop, run_until_done and the background thread."""

    def test_stop_is_terminal(self, clock, cache, fetch_result):
        """After stop nothing else happens."""
        notifier = make_notifier(clock, cache, never_called)
        notifier.observe(fetch_result(1, 5))

        notifier.stop()
        clock.advance(60)

        assert notifier.tick() is PollingState.STOPPED
        assert notifier.observe(fetch_result(5, 5)) is PollingState.STOPPED
        assert cache.calls == 0

    def test_stop_keeps_resolved_state(self, clock, cache, fetch_result):
        """Stopping a finished notifier does not rewrite its outcome."""
        notifier = make_notifier(clock, cache, never_called)
        notifier.observe(fetch_result(5, 5))

        notifier.stop()

        assert notifier.state is PollingState.RESOLVED

    def test_run_until_done_sleeps_between_ticks(self, clock, cache, fetch_result):
        """The blocking loop ticks on the interval until resolved."""

        def poll(last_count):
            cache.count += 1
            return cache(last_count)

        cache.count = 2
        notifier = PollingNotifier(poll, never_called, interval=5, clock=clock)
        notifier.observe(fetch_result(2, 5))

        assert notifier.run_until_done(sleep=clock.sleep) is PollingState.RESOLVED
        assert set(clock.sleeps) == {5}

    def test_background_thread_resolves(self, cache, fetch_result):
        """start() polls on a daemon thread until resolved."""
        cache.count = 5
        notifier = PollingNotifier(cache, never_called, interval=0.01, timeout=5)
        notifier.observe(fetch_result(2, 5))

        notifier.start()

        assert notifier.wait(timeout=5) is PollingState.RESOLVED

    def test_background_thread_stops(self, clock, cache, fetch_result):
        """stop() ends a running thread."""
        notifier = make_notifier(clock, cache, never_called, interval=0.01)
        notifier.observe(fetch_result(1, 5))
        notifier.start()

        notifier.stop(timeout=5)

        assert notifier.state is PollingState.STOPPED
        assert notifier.wait(timeout=0) is PollingState.STOPPED
