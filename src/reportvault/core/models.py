"""
Data models for ReportVault.

Items are what a client asks about, ReportRecords are what the upstream
returns, and CacheEntries wrap records with the time they were stored.
FetchResult and PollResult are the answers handed back to clients; they
serialize with camelCase keys through ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reportvault.shared.errors import ErrorContext, InvalidItemError

MAX_ITEM_ID_LENGTH = 128

FetchSource = Literal["cache", "partial_cache", "live", "cache_refreshing"]


class ItemKind(str, Enum):
    """Category of a tracked asset."""

    PRIMARY = "primary"
    SECONDARY = "secondary"

    @classmethod
    def parse(cls, value: str | ItemKind) -> ItemKind:
        """Resolve a kind name or one of its domain aliases.

        Raises:
            ValueError: If the value names no known kind
        """
        if isinstance(value, ItemKind):
            return value
        normalized = str(value).strip().lower()
        if normalized in KIND_ALIASES:
            return KIND_ALIASES[normalized]
        return cls(normalized)

    @property
    def label(self) -> str:
        """Human label used for fallback names."""
        return "Campaign" if self is ItemKind.PRIMARY else "Journey"


KIND_ALIASES: dict[str, ItemKind] = {
    "campaign": ItemKind.PRIMARY,
    "journey": ItemKind.SECONDARY,
}


@dataclass(frozen=True)
class Item:
    """An identifier plus its kind.

    Example:
        >>> Item.parse("campaign:abc123")
        Item(id='abc123', kind=<ItemKind.PRIMARY: 'primary'>)
    """

    id: str
    kind: ItemKind = ItemKind.PRIMARY

    @classmethod
    def parse(cls, raw: Item | dict[str, Any] | str) -> Item:
        """Build an Item from an Item, a ``{id, kind|type}`` dict or ``"kind:id"``.

        A bare string without a colon is taken as a primary item id.

        Raises:
            InvalidItemError: If the id is malformed or the kind unknown
        """
        if isinstance(raw, Item):
            return cls(validate_item_id(raw.id), raw.kind)

        if isinstance(raw, dict):
            item_id = raw.get("id")
            kind_value = raw.get("kind", raw.get("type", ItemKind.PRIMARY.value))
        elif isinstance(raw, str):
            kind_value, sep, item_id = raw.partition(":")
            if not sep:
                kind_value, item_id = ItemKind.PRIMARY.value, raw
        else:
            raise _invalid(str(raw), f"Unsupported item type: {type(raw).__name__}")

        item_id = validate_item_id(item_id)
        try:
            kind = ItemKind.parse(kind_value)
        except ValueError as e:
            raise _invalid(item_id, f"Unknown item kind: {kind_value!r}", e) from e
        return cls(item_id, kind)


def validate_item_id(value: Any) -> str:
    """Return the stripped id or raise InvalidItemError."""
    if value is None:
        raise _invalid("<missing>", "Item id is required")
    if not isinstance(value, str):
        raise _invalid(str(value), "Item id must be a string")
    item_id = value.strip()
    if not item_id:
        raise _invalid(item_id, "Item id is required")
    if len(item_id) > MAX_ITEM_ID_LENGTH:
        raise _invalid(item_id[:32], f"Item id exceeds {MAX_ITEM_ID_LENGTH} characters")
    if any(unicodedata.category(ch) == "Cc" for ch in item_id):
        raise _invalid(item_id.encode("unicode_escape").decode(), "Item id contains control characters")
    return item_id


def _invalid(item_id: str, message: str, original: Exception | None = None) -> InvalidItemError:
    return InvalidItemError(
        message,
        item_ids=[item_id],
        context=ErrorContext(operation="parse_item", item_id=item_id),
        original_error=original,
    )


class WireModel(BaseModel):
    """Base for models that cross the API boundary with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys and JSON-compatible values."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ReportRecord(WireModel):
    """Fetched report for one item under one timeframe."""

    id: str = Field(..., min_length=1, description="Item identifier")
    kind: ItemKind = Field(default=ItemKind.PRIMARY, description="Item kind")
    metrics: dict[str, float] = Field(default_factory=dict, description="Metric name to value")
    name: str = Field(default="", description="Display name")
    fetched_at: datetime = Field(..., description="When the upstream produced this record")

    @property
    def item(self) -> Item:
        return Item(self.id, self.kind)


@dataclass(frozen=True)
class CacheEntry:
    """A cached record and the time the store wrote it.

    Attributes:
        record: The cached report
        cached_at: Store clock time of the last successful put
    """

    record: ReportRecord
    cached_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.cached_at


def is_fresh(entry: CacheEntry, now: datetime, ttl: timedelta) -> bool:
    """Whether ``entry`` is younger than ``ttl`` at ``now``.

    Staleness is a read-time classification; stale entries stay in storage.
    """
    return entry.age(now) < ttl


@dataclass
class RateLimitWindow:
    """Cooldown window for one upstream.

    Attributes:
        upstream: Upstream name
        until: No new batch call is issued before this time
        window_seconds: Length of the window that produced ``until``
        strikes: Consecutive limits recorded while a window was active or
            within its escalation grace
    """

    upstream: str
    until: datetime
    window_seconds: float
    strikes: int = 1

    def is_active(self, now: datetime) -> bool:
        return now < self.until

    def remaining(self, now: datetime) -> float:
        return max(0.0, (self.until - now).total_seconds())

    def escalates(self, now: datetime) -> bool:
        """Whether a limit recorded at ``now`` builds on this window.

        True while the window is active and for one window length after it.
        """
        return now < self.until + timedelta(seconds=self.window_seconds)


class FetchSummary(WireModel):
    """Status summary attached to every fetch result."""

    source: FetchSource
    fetched: int = 0
    total: int = 0
    last_updated: datetime | None = None


class FetchResult(WireModel):
    """Answer to a fetch request.

    ``reports`` holds every record available now; ``pending`` ids may be
    retried soon, ``rate_limited`` ids only after the upstream cooldown.
    """

    reports: list[ReportRecord] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)
    rate_limited: list[str] = Field(default_factory=list)
    invalid: list[str] = Field(default_factory=list)
    partial: bool = False
    summary: FetchSummary
    message: str | None = None
    retry_after: float | None = None

    @property
    def unresolved(self) -> int:
        return len(self.pending) + len(self.rate_limited)


class PollResult(WireModel):
    """Answer to a lightweight "what's cached now" query."""

    has_updates: bool
    reports: list[ReportRecord] = Field(default_factory=list)
    count: int = 0
    message: str | None = None


__all__ = [
    "KIND_ALIASES",
    "CacheEntry",
    "FetchResult",
    "FetchSource",
    "FetchSummary",
    "Item",
    "ItemKind",
    "PollResult",
    "RateLimitWindow",
    "ReportRecord",
    "WireModel",
    "is_fresh",
    "validate_item_id",
]
