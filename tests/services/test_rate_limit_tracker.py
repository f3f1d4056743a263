"""Unit tests for RateLimitTracker."""

from __future__ import annotations

import pytest

from reportvault.services.rate_limit_tracker import RateLimitTracker
from reportvault.shared.errors import ApplicationError, CacheUnavailableError, ErrorCode


class TestRateLimitTrackerInit:
    """Constructor validation."""

    def test_defaults(self, clock):
        """Default backoff is five minutes."""
        tracker = RateLimitTracker(clock=clock)

        assert tracker.default_backoff == 300
        assert tracker.max_backoff == 3600

    @pytest.mark.parametrize(
        ("default_backoff", "max_backoff"),
        [(0, 3600), (-1, 3600), (600, 300)],
    )
    def test_invalid_backoff_rejected(self, clock, default_backoff, max_backoff):
        """Non-positive default or a ceiling below the default is refused."""
        with pytest.raises(ApplicationError) as exc_info:
            RateLimitTracker(default_backoff=default_backoff, max_backoff=max_backoff, clock=clock)

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR


class TestRateLimitTrackerWindows:
    """Opening, expiring and clearing windows."""

    def test_not_limited_initially(self, clock):
        """A fresh tracker limits nothing."""
        tracker = RateLimitTracker(clock=clock)

        assert tracker.is_limited("reporting") is False
        assert tracker.remaining("reporting") == 0.0

    def test_retry_after_sets_window(self, clock):
        """Retry-After from the upstream wins over the default."""
        tracker = RateLimitTracker(clock=clock)

        window = tracker.record_limit("reporting", retry_after=120)

        assert window.window_seconds == 120
        assert tracker.remaining("reporting") == pytest.approx(120)

    def test_default_backoff_without_retry_after(self, clock):
        """No Retry-After means the default window."""
        tracker = RateLimitTracker(default_backoff=300, clock=clock)

        tracker.record_limit("reporting")

        assert tracker.remaining("reporting") == pytest.approx(300)

    def test_window_boundary(self, clock):
        """Limited until the window ends, free exactly at its end."""
        tracker = RateLimitTracker(clock=clock)
        tracker.record_limit("reporting", retry_after=300)

        clock.advance(60)
        assert tracker.is_limited("reporting") is True

        clock.advance(240)
        assert tracker.is_limited("reporting") is False

    def test_windows_are_per_upstream(self, clock):
        """A limit on one upstream leaves others alone."""
        tracker = RateLimitTracker(clock=clock)

        tracker.record_limit("reporting")

        assert tracker.is_limited("reporting") is True
        assert tracker.is_limited("other") is False

    def test_repeat_limit_escalates(self, clock):
        """A limit during an active window doubles the window."""
        tracker = RateLimitTracker(default_backoff=300, max_backoff=3600, clock=clock)

        tracker.record_limit("reporting")
        clock.advance(10)
        window = tracker.record_limit("reporting")

        assert window.window_seconds == 600
        assert window.strikes == 2
        assert tracker.remaining("reporting") == pytest.approx(600)

    def test_escalation_is_capped(self, clock):
        """Escalated windows never exceed max_backoff."""
        tracker = RateLimitTracker(default_backoff=300, max_backoff=1000, clock=clock)

        for _ in range(5):
            window = tracker.record_limit("reporting")

        assert window.window_seconds == 1000

    def test_window_never_shrinks(self, clock):
        """A shorter Retry-After cannot cut an active window short."""
        tracker = RateLimitTracker(default_backoff=300, max_backoff=3600, clock=clock)
        first = tracker.record_limit("reporting", retry_after=3000)

        second = tracker.record_limit("reporting", retry_after=5)

        assert second.until >= first.until

    def test_limit_right_after_expiry_escalates(self, clock):
        """A 429 on the first call after a window ends doubles the next window."""
        tracker = RateLimitTracker(default_backoff=300, max_backoff=3600, clock=clock)
        tracker.record_limit("reporting")
        clock.advance(300)
        assert tracker.is_limited("reporting") is False

        window = tracker.record_limit("reporting")

        assert window.strikes == 2
        assert window.window_seconds == 600
        assert tracker.remaining("reporting") == pytest.approx(600)

    def test_saturated_upstream_keeps_escalating(self, clock):
        """Each limit met as soon as the previous window ends escalates again, up to the cap."""
        tracker = RateLimitTracker(default_backoff=300, max_backoff=1000, clock=clock)

        lengths = []
        for _ in range(4):
            window = tracker.record_limit("reporting")
            lengths.append(window.window_seconds)
            clock.advance(tracker.remaining("reporting"))

        assert lengths == [300, 600, 1000, 1000]

    def test_limit_after_grace_starts_over(self, clock):
        """Once a window is more than its own length in the past, the next limit is a first strike."""
        tracker = RateLimitTracker(default_backoff=300, clock=clock)
        tracker.record_limit("reporting")
        clock.advance(600)

        window = tracker.record_limit("reporting")

        assert window.strikes == 1
        assert window.window_seconds == 300

    def test_clear_single_upstream(self, clock):
        """Clearing one upstream leaves others limited."""
        tracker = RateLimitTracker(clock=clock)
        tracker.record_limit("a")
        tracker.record_limit("b")

        assert tracker.clear("a") == 1
        assert tracker.is_limited("a") is False
        assert tracker.is_limited("b") is True

    def test_clear_all_is_idempotent(self, clock):
        """Clearing twice is harmless."""
        tracker = RateLimitTracker(clock=clock)
        tracker.record_limit("a")

        assert tracker.clear() == 1
        assert tracker.clear() == 0

    def test_get_stats_lists_active_windows(self, clock):
        """Stats report remaining time per upstream."""
        tracker = RateLimitTracker(clock=clock)
        tracker.record_limit("reporting", retry_after=100)
        clock.advance(40)

        stats = tracker.get_stats()

        assert stats["active"] == 1
        assert stats["windows"][0]["upstream"] == "reporting"
        assert stats["windows"][0]["remaining_seconds"] == pytest.approx(60)

    def test_stats_skip_windows_in_grace(self, clock):
        """A window that ended is no longer listed, though it still escalates."""
        tracker = RateLimitTracker(clock=clock)
        tracker.record_limit("reporting", retry_after=100)
        clock.advance(150)

        assert tracker.get_stats()["active"] == 0
        assert tracker.snapshot() == []


class TestRateLimitTrackerPersistence:
    """Windows survive a new tracker on the same store."""

    def test_window_restored_from_store(self, clock, store):
        """A second tracker honours a window recorded by the first."""
        RateLimitTracker(clock=clock, store=store).record_limit("reporting", retry_after=300)

        restored = RateLimitTracker(clock=clock, store=store)

        assert restored.is_limited("reporting") is True
        assert restored.remaining("reporting") == pytest.approx(300)

    def test_restored_window_in_grace_escalates(self, clock, store):
        """A later run that meets a 429 soon after a stored window ended escalates it."""
        RateLimitTracker(default_backoff=300, clock=clock, store=store).record_limit("reporting")
        clock.advance(400)

        restored = RateLimitTracker(default_backoff=300, clock=clock, store=store)
        window = restored.record_limit("reporting")

        assert restored.is_limited("reporting") is True
        assert window.window_seconds == 600
        assert window.strikes == 2

    def test_clear_removes_persisted_window(self, clock, store):
        """Cleared windows do not come back."""
        tracker = RateLimitTracker(clock=clock, store=store)
        tracker.record_limit("reporting")

        tracker.clear("reporting")

        assert RateLimitTracker(clock=clock, store=store).is_limited("reporting") is False

    def test_unreadable_store_is_not_fatal(self, clock, mocker):
        """A store failure on load leaves the tracker empty."""
        broken_store = mocker.Mock()
        broken_store.load_rate_limit_windows.side_effect = CacheUnavailableError("boom")

        tracker = RateLimitTracker(clock=clock, store=broken_store)

        assert tracker.is_limited("reporting") is False

    def test_unwritable_store_still_limits_in_memory(self, clock, mocker):
        """A store failure on save keeps the in-memory window."""
        broken_store = mocker.Mock()
        broken_store.load_rate_limit_windows.return_value = []
        broken_store.save_rate_limit_window.side_effect = CacheUnavailableError("boom")
        tracker = RateLimitTracker(clock=clock, store=broken_store)

        tracker.record_limit("reporting")

        assert tracker.is_limited("reporting") is True
