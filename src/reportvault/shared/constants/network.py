"""
Network Configuration Constants

Upstream reporting API defaults, batching and rate-limit backoff values.
"""

from .cache import BASE_HOUR, BASE_MINUTE, BASE_SECOND


class NetworkConfig:
    """HTTP client configuration constants."""

    DEFAULT_TIMEOUT = 30 * BASE_SECOND
    DEFAULT_CONNECTION_RETRIES = 3
    RETRY_BACKOFF_FACTOR = 0.5

    # Proactive spacing between per-item upstream requests
    DEFAULT_REQUEST_DELAY = 1.0 * BASE_SECOND

    USER_AGENT = "ReportVault/0.1.0"
    CONTENT_TYPE_JSON = "application/json"
    API_KEY_HEADER = "X-API-Key"


class UpstreamConfig:
    """Reporting API endpoint defaults."""

    DEFAULT_NAME = "reporting"
    DEFAULT_BASE_URL = "https://api.ap3api.com"
    REPORT_ENDPOINT = "/v1/campaign/reports/get"
    ALL_TIME_TIMEFRAME = "all-time"


class BatchConfig:
    """Batch scheduling defaults."""

    DEFAULT_SIZE = 10
    INTER_BATCH_DELAY = 3.0 * BASE_SECOND
    ERROR_DELAY = 30.0 * BASE_SECOND
    # Chunks issued per fetch call; 0 means no limit
    MAX_BATCHES_PER_REQUEST = 1


class RateLimitConfig:
    """Rate-limit window defaults."""

    DEFAULT_BACKOFF = 5 * BASE_MINUTE
    MAX_BACKOFF = BASE_HOUR
    # Used when a Retry-After header is present but unparseable
    DEFAULT_RETRY_AFTER = 60 * BASE_SECOND
