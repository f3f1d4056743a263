"""Request models for the JSON facade.

Responses are the core result models serialized with ``to_wire()``; only
requests need their own models here.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from reportvault.core.models import WireModel
from reportvault.shared.constants import CacheValidationConstants


class FetchRequest(WireModel):
    """``{items, timeframe, forceRefresh}``.

    Items may be ``{id, kind}`` objects or ``"kind:id"`` strings. Individual
    malformed items are not a request error; they come back in ``invalid``.
    """

    items: list[dict[str, Any] | str] = Field(..., min_length=1)
    timeframe: str | None = Field(
        default=None,
        min_length=1,
        max_length=CacheValidationConstants.MAX_TIMEFRAME_LENGTH,
    )
    force_refresh: bool = False


class PollRequest(WireModel):
    """``{timeframe, lastCount, ids?}``."""

    timeframe: str | None = Field(
        default=None,
        min_length=1,
        max_length=CacheValidationConstants.MAX_TIMEFRAME_LENGTH,
    )
    last_count: int = Field(default=0, ge=0)
    ids: list[str] | None = None


__all__ = ["FetchRequest", "PollRequest"]
