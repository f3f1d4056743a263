"""Cache configuration model."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field

from reportvault.shared.constants import CacheValidationConstants, ReportCacheConfig


class CacheSettings(BaseModel):
    """Report cache configuration.

    ``ttl_seconds`` counts from the moment a record is stored; reads never
    extend it.
    """

    db_path: Path = Field(
        default=Path.home() / ReportCacheConfig.DEFAULT_DB_DIR / ReportCacheConfig.DEFAULT_DB_NAME,
        description="SQLite database file",
    )
    ttl_seconds: int = Field(
        default=ReportCacheConfig.DEFAULT_TTL,
        ge=CacheValidationConstants.MIN_TTL,
        le=CacheValidationConstants.MAX_TTL,
        description="Freshness window in seconds",
    )
    default_timeframe: str = Field(
        default=ReportCacheConfig.DEFAULT_TIMEFRAME,
        min_length=1,
        max_length=CacheValidationConstants.MAX_TIMEFRAME_LENGTH,
        description="Timeframe used when a request names none",
    )

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)


__all__ = ["CacheSettings"]
