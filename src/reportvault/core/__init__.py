"""Core domain models for ReportVault."""

from .models import (
    CacheEntry,
    FetchResult,
    FetchSummary,
    Item,
    ItemKind,
    PollResult,
    RateLimitWindow,
    ReportRecord,
    is_fresh,
)

__all__ = [
    "CacheEntry",
    "FetchResult",
    "FetchSummary",
    "Item",
    "ItemKind",
    "PollResult",
    "RateLimitWindow",
    "ReportRecord",
    "is_fresh",
]
