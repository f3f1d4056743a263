"""Services module for ReportVault.

This module contains the cache store, rate limiting, batch scheduling and
the fetch orchestrator that ties them together, plus the client-side
polling notifier.
"""

from .batch_scheduler import BatchScheduler, ScheduleOutcome
from .cache_store import ReportCacheStore
from .merger import merge_record, merge_reports
from .orchestrator import FetchOrchestrator, build_orchestrator
from .polling_notifier import PollingNotifier, PollingState
from .rate_limit_tracker import RateLimitTracker
from .upstream import HttpReportingClient

__all__ = [
    "BatchScheduler",
    "FetchOrchestrator",
    "HttpReportingClient",
    "PollingNotifier",
    "PollingState",
    "RateLimitTracker",
    "ReportCacheStore",
    "ScheduleOutcome",
    "build_orchestrator",
    "merge_record",
    "merge_reports",
]
