"""Per-upstream rate-limit windows.

Records 429 responses and answers whether an upstream is still cooling down.
Limits that arrive while a window is active, or within one window length
after it ended, escalate the next window (doubling, up to a ceiling).
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Any

from reportvault.core.models import RateLimitWindow
from reportvault.shared.clock import Clock, SystemClock
from reportvault.shared.constants import RateLimitConfig
from reportvault.shared.errors import (
    ApplicationError,
    CacheUnavailableError,
    ErrorCode,
    ErrorContext,
)
from reportvault.shared.logging import log_operation_error, log_operation_success
from reportvault.shared.protocols import RateLimitWindowStore

logger = logging.getLogger(__name__)


class RateLimitTracker:
    """Thread-safe registry of rate-limit windows keyed by upstream name.

    Args:
        default_backoff: Window in seconds when the upstream gives no Retry-After
        max_backoff: Ceiling in seconds for escalated windows
        clock: Time source
        store: Optional persistence for windows across processes

    Example:
        >>> tracker = RateLimitTracker(default_backoff=300)
        >>> tracker.record_limit("reporting", retry_after=120)
        >>> tracker.is_limited("reporting")
        True
    """

    def __init__(
        self,
        default_backoff: float = RateLimitConfig.DEFAULT_BACKOFF,
        max_backoff: float = RateLimitConfig.MAX_BACKOFF,
        clock: Clock | None = None,
        store: RateLimitWindowStore | None = None,
    ) -> None:
        """Initialize the tracker.

        Raises:
            ApplicationError: If the backoff values are invalid
        """
        context = ErrorContext(
            operation="rate_limit_tracker_init",
            additional_data={"default_backoff": default_backoff, "max_backoff": max_backoff},
        )
        if default_backoff <= 0:
            raise ApplicationError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"default_backoff must be positive, got: {default_backoff}",
                context=context,
            )
        if max_backoff < default_backoff:
            raise ApplicationError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"max_backoff ({max_backoff}) must be >= default_backoff ({default_backoff})",
                context=context,
            )

        self.default_backoff = float(default_backoff)
        self.max_backoff = float(max_backoff)
        self.clock: Clock = clock or SystemClock()
        self._store = store
        self._lock = threading.Lock()
        self._windows: dict[str, RateLimitWindow] = {}
        self._load_persisted()

    def _load_persisted(self) -> None:
        if self._store is None:
            return
        try:
            windows = self._store.load_rate_limit_windows(self.clock.now())
        except CacheUnavailableError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="load_rate_limit_windows",
                level=logging.WARNING,
            )
            return
        self._windows = {window.upstream: window for window in windows}
        if windows:
            logger.info("Restored %d recent rate-limit window(s)", len(windows))

    def _recent_window(self, upstream: str) -> RateLimitWindow | None:
        """Return the window if it is active or still escalates. Caller holds the lock."""
        window = self._windows.get(upstream)
        if window is None:
            return None
        if window.escalates(self.clock.now()):
            return window
        del self._windows[upstream]
        logger.debug("Rate-limit window for %s expired", upstream)
        return None

    def _active_window(self, upstream: str) -> RateLimitWindow | None:
        """Caller holds the lock."""
        window = self._recent_window(upstream)
        if window is not None and window.is_active(self.clock.now()):
            return window
        return None

    def is_limited(self, upstream: str) -> bool:
        """Whether no batch call may be issued to ``upstream`` right now."""
        with self._lock:
            return self._active_window(upstream) is not None

    def remaining(self, upstream: str) -> float:
        """Seconds until ``upstream``'s window ends, 0 when not limited."""
        with self._lock:
            window = self._active_window(upstream)
            return window.remaining(self.clock.now()) if window else 0.0

    def record_limit(self, upstream: str, retry_after: float | None = None) -> RateLimitWindow:
        """Open or escalate the window for ``upstream``.

        The base window is ``retry_after`` when the upstream supplied one,
        otherwise ``default_backoff``. While a previous window is active, or
        for one window length after it ended, the new one is
        ``max(base, min(previous * 2, max_backoff))``.

        Args:
            upstream: Upstream name
            retry_after: Seconds the upstream asked us to wait

        Returns:
            The window now in force
        """
        base = float(retry_after) if retry_after is not None and retry_after > 0 else self.default_backoff

        with self._lock:
            now = self.clock.now()
            previous = self._recent_window(upstream)
            if previous is None:
                window_seconds = base
                strikes = 1
            else:
                window_seconds = max(base, min(previous.window_seconds * 2, self.max_backoff))
                strikes = previous.strikes + 1

            until = now + timedelta(seconds=window_seconds)
            if previous is not None and previous.until > until:
                until = previous.until

            window = RateLimitWindow(
                upstream=upstream,
                until=until,
                window_seconds=window_seconds,
                strikes=strikes,
            )
            self._windows[upstream] = window

        logger.warning(
            "Rate limit recorded for %s: waiting %.0fs (strike %d)",
            upstream,
            window_seconds,
            strikes,
            extra={
                "operation": "record_rate_limit",
                "context": {"upstream": upstream, "retry_after": retry_after, "strikes": strikes},
            },
        )
        self._persist(window)
        return window

    def _persist(self, window: RateLimitWindow) -> None:
        if self._store is None:
            return
        try:
            self._store.save_rate_limit_window(window)
        except CacheUnavailableError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="save_rate_limit_window",
                level=logging.WARNING,
            )

    def clear(self, upstream: str | None = None) -> int:
        """Drop one upstream's window, or all of them.

        The next limit after a clear starts again from the base window.

        Returns:
            Number of windows removed from memory
        """
        with self._lock:
            if upstream is None:
                removed = len(self._windows)
                self._windows.clear()
            else:
                removed = 1 if self._windows.pop(upstream, None) else 0

        if self._store is not None:
            self._store.delete_rate_limit_windows(upstream)

        log_operation_success(
            logger=logger,
            operation="clear_rate_limits",
            duration_ms=0,
            context={"upstream": upstream or "*", "removed": removed},
        )
        return removed

    def snapshot(self) -> list[RateLimitWindow]:
        """Return the currently active windows."""
        with self._lock:
            active = [window for window in map(self._active_window, list(self._windows)) if window is not None]
            return sorted(active, key=lambda w: w.upstream)

    def get_stats(self) -> dict[str, Any]:
        """Summarize active windows for display."""
        now = self.clock.now()
        windows = self.snapshot()
        return {
            "active": len(windows),
            "default_backoff": self.default_backoff,
            "max_backoff": self.max_backoff,
            "windows": [
                {
                    "upstream": window.upstream,
                    "until": window.until.isoformat(),
                    "remaining_seconds": round(window.remaining(now), 1),
                    "window_seconds": window.window_seconds,
                    "strikes": window.strikes,
                }
                for window in windows
            ],
        }


__all__ = ["RateLimitTracker"]
