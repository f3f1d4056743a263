"""Time source abstraction.

Components that reason about TTLs, cooldown windows or polling deadlines take
a ``Clock`` so tests can drive time explicitly instead of sleeping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def utc_from_timestamp(value: float) -> datetime:
    """Convert a POSIX timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(value, tz=timezone.utc)


__all__ = ["Clock", "SystemClock", "utc_from_timestamp"]
