"""
Cache Configuration Constants

Time units and defaults for the report cache. Entries are never deleted on
expiry; the TTL only classifies them as fresh or stale at read time.
"""

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE
BASE_DAY = 24 * BASE_HOUR


class ReportCacheConfig:
    """Report cache defaults."""

    DEFAULT_TTL = BASE_DAY  # 24 hours, fixed from fetch time
    DEFAULT_TIMEFRAME = "all-time"
    DEFAULT_DB_DIR = ".reportvault"
    DEFAULT_DB_NAME = "cache.db"


class CacheValidationConstants:
    """Cache validation constants."""

    MIN_TTL = BASE_SECOND
    MAX_TTL = 365 * BASE_DAY

    MAX_TIMEFRAME_LENGTH = 64
