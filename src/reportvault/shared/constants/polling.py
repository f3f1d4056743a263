"""
Polling Configuration Constants

Client-side progress polling defaults.
"""

from .cache import BASE_MINUTE, BASE_SECOND


class PollingConfig:
    """Polling notifier defaults."""

    INTERVAL = 5 * BASE_SECOND
    TIMEOUT = 5 * BASE_MINUTE
    MAX_RETRIES = 3
    RATE_LIMIT_BACKOFF = 5 * BASE_MINUTE
    # Re-invoke the orchestrator when the cache count has not moved for this long
    REFETCH_AFTER = 2 * BASE_MINUTE
