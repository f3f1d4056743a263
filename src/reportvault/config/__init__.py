"""ReportVault configuration."""

from .loader import get_config, load_settings, reload_config, set_config
from .models import (
    AppSettings,
    CacheSettings,
    LoggingSettings,
    PollingSettings,
    RateLimitSettings,
    SchedulerSettings,
    Settings,
    UpstreamSettings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "LoggingSettings",
    "PollingSettings",
    "RateLimitSettings",
    "SchedulerSettings",
    "Settings",
    "UpstreamSettings",
    "get_config",
    "load_settings",
    "reload_config",
    "set_config",
]
