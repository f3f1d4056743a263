"""
ReportVault - Accumulative Report Cache

Fetches performance reports for campaigns and journeys from a slow,
rate-limited reporting API. Fresh reports are served from a SQLite cache,
the rest are fetched in small batches, and partial results can be polled
until every requested item has arrived.
"""

__version__ = "0.1.0"

from .core import FetchResult, Item, ItemKind, PollResult, ReportRecord
from .services import FetchOrchestrator, PollingNotifier, build_orchestrator

__all__ = [
    "FetchOrchestrator",
    "FetchResult",
    "Item",
    "ItemKind",
    "PollResult",
    "PollingNotifier",
    "ReportRecord",
    "build_orchestrator",
]
