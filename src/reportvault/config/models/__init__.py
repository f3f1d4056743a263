"""Configuration domain models."""

from __future__ import annotations

from .app_settings import AppSettings, LoggingSettings
from .cache_settings import CacheSettings
from .scheduling_settings import PollingSettings, RateLimitSettings, SchedulerSettings
from .settings import Settings
from .upstream_settings import UpstreamSettings

__all__ = [
    "AppSettings",
    "CacheSettings",
    "LoggingSettings",
    "PollingSettings",
    "RateLimitSettings",
    "SchedulerSettings",
    "Settings",
    "UpstreamSettings",
]
