"""
Pytest configuration and shared fixtures for ReportVault tests.

Time never passes on its own in these tests: every component takes the
``clock`` fixture, and scheduler sleeps advance that clock instead of
blocking.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Generator, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from reportvault.config import Settings, set_config
from reportvault.core.models import Item, ItemKind, ReportRecord
from reportvault.services.batch_scheduler import BatchScheduler
from reportvault.services.cache_store import ReportCacheStore
from reportvault.services.orchestrator import FetchOrchestrator
from reportvault.services.rate_limit_tracker import RateLimitTracker

UPSTREAM = "reporting"
TIMEFRAME = "last-7-days"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    def sleep(self, seconds: float) -> None:
        """Drop-in for ``time.sleep`` that moves the clock instead."""
        self.sleeps.append(seconds)
        self.advance(seconds)


def build_record(
    item_id: str,
    kind: ItemKind = ItemKind.PRIMARY,
    fetched_at: datetime | None = None,
    **metrics: float,
) -> ReportRecord:
    return ReportRecord(
        id=item_id,
        kind=kind,
        metrics=metrics or {"opens": 10.0, "clicks": 2.0},
        name=f"{kind.label} {item_id}",
        fetched_at=fetched_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class FakeUpstream:
    """Scriptable ``ReportingClientProtocol`` implementation.

    Each call consumes one scripted action: an exception instance is raised,
    a callable receives the batch and returns records (or raises), and an
    empty script means every item succeeds.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[list[str]] = []
        self.timeframes: list[str] = []
        self.script: deque[Any] = deque()
        self.closed = False

    def queue(self, *actions: Any) -> None:
        self.script.extend(actions)

    def records_for(self, items: Sequence[Item]) -> list[ReportRecord]:
        return [build_record(item.id, item.kind, fetched_at=self.clock.now()) for item in items]

    def fetch_batch(self, items: Sequence[Item], timeframe: str) -> list[ReportRecord]:
        self.calls.append([item.id for item in items])
        self.timeframes.append(timeframe)
        action = self.script.popleft() if self.script else None
        if isinstance(action, BaseException):
            raise action
        if callable(action):
            return action(items)
        return self.records_for(items)

    def close(self) -> None:
        self.closed = True

    @property
    def requested_ids(self) -> list[str]:
        return [item_id for call in self.calls for item_id in call]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_record() -> Callable[..., ReportRecord]:
    """Factory for ReportRecords with sensible defaults."""
    return build_record


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> Generator[ReportCacheStore, None, None]:
    """File-backed store with a 24h TTL on the fake clock."""
    cache_store = ReportCacheStore(tmp_path / "cache.db", ttl=timedelta(hours=24), clock=clock)
    yield cache_store
    cache_store.close()


@pytest.fixture
def tracker(clock: FakeClock, store: ReportCacheStore) -> RateLimitTracker:
    return RateLimitTracker(default_backoff=300, max_backoff=3600, clock=clock, store=store)


@pytest.fixture
def scheduler(tracker: RateLimitTracker, clock: FakeClock) -> BatchScheduler:
    """Scheduler issuing one batch of 10 per run, as the service does by default."""
    return BatchScheduler(
        tracker,
        batch_size=10,
        inter_batch_delay=3.0,
        error_delay=30.0,
        max_batches=1,
        sleep=clock.sleep,
    )


@pytest.fixture
def upstream(clock: FakeClock) -> FakeUpstream:
    return FakeUpstream(clock)


@pytest.fixture
def orchestrator(
    store: ReportCacheStore,
    upstream: FakeUpstream,
    scheduler: BatchScheduler,
) -> FetchOrchestrator:
    return FetchOrchestrator(
        store,
        upstream,
        scheduler,
        upstream=UPSTREAM,
        default_timeframe=TIMEFRAME,
    )


@pytest.fixture
def settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Settings pointing at a temporary database, installed as the global config."""
    test_settings = Settings(
        cache={"db_path": tmp_path / "cache.db", "default_timeframe": TIMEFRAME},
        upstream={"api_key": "test-key", "request_delay": 0},
        logging={"level": "WARNING", "console_output": False},
    )
    set_config(test_settings)
    yield test_settings
    set_config(None)
