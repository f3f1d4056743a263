"""
ReportVault Constants Module

Centralized constants for ReportVault. Magic values and configuration
defaults live here so every module agrees on them.
"""

from .cache import (
    BASE_DAY,
    BASE_HOUR,
    BASE_MINUTE,
    BASE_SECOND,
    CacheValidationConstants,
    ReportCacheConfig,
)
from .cli import CLIDefaults, CLIMessages
from .http_codes import HTTPStatusCodes
from .network import BatchConfig, NetworkConfig, RateLimitConfig, UpstreamConfig
from .polling import PollingConfig

__all__ = [
    "BASE_DAY",
    "BASE_HOUR",
    "BASE_MINUTE",
    "BASE_SECOND",
    "BatchConfig",
    "CLIDefaults",
    "CLIMessages",
    "CacheValidationConstants",
    "HTTPStatusCodes",
    "NetworkConfig",
    "PollingConfig",
    "RateLimitConfig",
    "ReportCacheConfig",
    "UpstreamConfig",
]
