"""Translation of reporting API payloads into ReportRecords."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from reportvault.core.models import Item, ItemKind, ReportRecord
from reportvault.shared.errors import ErrorCode, ErrorContext, TransientError

# Upstream performance field -> metric name
PRIMARY_METRICS: dict[str, str] = {
    "opens": "opens",
    "clicks": "clicks",
    "deliveries": "deliveries",
    "bounced": "bounces",
    "unsubscribed": "unsubscribes",
    "spam": "spam_reports",
    "unique_opens": "unique_opens",
    "unique_clicks": "unique_clicks",
    "sent": "total_recipients",
    "invalid": "invalid",
    "forwarded": "forwarded",
    "reacted": "reacted",
    "replied": "replied",
    "viewed_online": "viewed_online",
}

SECONDARY_METRICS: dict[str, str] = {
    **{src: dst for src, dst in PRIMARY_METRICS.items() if src != "sent"},
    "entered": "entered",
    "in_journey": "in_journey",
    "exited": "exited",
    "revenue": "revenue",
}


def _number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        result = float(value) if isinstance(value, (int, float)) else float(str(value))
    except (ValueError, OverflowError):
        return 0.0
    # NaN and infinities do not survive the JSON cache payload
    return result if math.isfinite(result) else 0.0


def map_report(item: Item, payload: Any, fetched_at: datetime) -> ReportRecord:
    """Build a ReportRecord from a ``/v1/campaign/reports/get`` response.

    Primary items require ``reports.performance``. Secondary items only
    require ``reports``; their recipient total is the number of entrants.

    Raises:
        TransientError: If the payload does not have the expected shape
    """
    reports = payload.get("reports") if isinstance(payload, dict) else None
    performance = reports.get("performance") if isinstance(reports, dict) else None

    if not isinstance(reports, dict) or (item.kind is ItemKind.PRIMARY and not isinstance(performance, dict)):
        raise TransientError(
            "Invalid response format from reporting API",
            code=ErrorCode.API_INVALID_RESPONSE,
            context=ErrorContext(operation="map_report", item_id=item.id),
        )
    performance = performance if isinstance(performance, dict) else {}

    if item.kind is ItemKind.PRIMARY:
        metrics = {dst: _number(performance.get(src)) for src, dst in PRIMARY_METRICS.items()}
    else:
        metrics = {dst: _number(performance.get(src)) for src, dst in SECONDARY_METRICS.items()}
        metrics["total_recipients"] = metrics["entered"]

    name = payload.get("campaign_name") or f"{item.kind.label} {item.id}"

    return ReportRecord(
        id=item.id,
        kind=item.kind,
        metrics=metrics,
        name=str(name),
        fetched_at=fetched_at,
    )


__all__ = ["PRIMARY_METRICS", "SECONDARY_METRICS", "map_report"]
