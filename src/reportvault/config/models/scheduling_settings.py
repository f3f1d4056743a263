"""Batch scheduling, rate limiting and polling configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from reportvault.shared.constants import BatchConfig, PollingConfig, RateLimitConfig


class SchedulerSettings(BaseModel):
    """Batch scheduler configuration."""

    batch_size: int = Field(
        default=BatchConfig.DEFAULT_SIZE,
        ge=1,
        description="Maximum items per upstream call",
    )
    inter_batch_delay: float = Field(
        default=BatchConfig.INTER_BATCH_DELAY,
        ge=0,
        description="Pause between successful batches in seconds",
    )
    error_delay: float = Field(
        default=BatchConfig.ERROR_DELAY,
        ge=0,
        description="Pause after a batch that failed in seconds",
    )
    max_batches_per_request: int = Field(
        default=BatchConfig.MAX_BATCHES_PER_REQUEST,
        ge=0,
        description="Batches issued per fetch; 0 means unlimited",
    )


class RateLimitSettings(BaseModel):
    """Rate-limit window configuration."""

    default_backoff: float = Field(
        default=RateLimitConfig.DEFAULT_BACKOFF,
        gt=0,
        description="Window length when the upstream gives no Retry-After",
    )
    max_backoff: float = Field(
        default=RateLimitConfig.MAX_BACKOFF,
        gt=0,
        description="Ceiling for escalated windows",
    )
    persist: bool = Field(
        default=True,
        description="Store windows in the cache database between runs",
    )

    @model_validator(mode="after")
    def _check_ceiling(self) -> RateLimitSettings:
        if self.max_backoff < self.default_backoff:
            msg = "max_backoff must be >= default_backoff"
            raise ValueError(msg)
        return self


class PollingSettings(BaseModel):
    """Client-side polling configuration."""

    interval: float = Field(default=PollingConfig.INTERVAL, gt=0)
    timeout: float = Field(default=PollingConfig.TIMEOUT, gt=0)
    max_retries: int = Field(default=PollingConfig.MAX_RETRIES, ge=0)
    rate_limit_backoff: float = Field(default=PollingConfig.RATE_LIMIT_BACKOFF, gt=0)
    refetch_after: float = Field(default=PollingConfig.REFETCH_AFTER, gt=0)


__all__ = ["PollingSettings", "RateLimitSettings", "SchedulerSettings"]
