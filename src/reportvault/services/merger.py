"""Id-keyed merge of report records.

Incoming records are shallow-merged over existing ones: only the fields an
incoming record explicitly carries replace the existing values, and records
absent from the incoming set are kept untouched.
"""

from __future__ import annotations

from collections.abc import Iterable

from reportvault.core.models import ReportRecord


def merge_record(
    existing: ReportRecord | None,
    incoming: ReportRecord,
    *,
    newer_wins: bool = False,
) -> ReportRecord:
    """Merge one incoming record over the existing record with the same id.

    Args:
        existing: Current record, or None
        incoming: Newly arrived record
        newer_wins: Keep ``existing`` when ``incoming`` was fetched earlier

    Returns:
        The merged record

    Raises:
        ValueError: If the ids differ
    """
    if existing is None:
        return incoming
    if existing.id != incoming.id:
        msg = f"cannot merge record {incoming.id!r} into {existing.id!r}"
        raise ValueError(msg)
    if newer_wins and incoming.fetched_at < existing.fetched_at:
        return existing
    return existing.model_copy(update=incoming.model_dump(exclude_unset=True))


def merge_reports(
    existing: Iterable[ReportRecord],
    incoming: Iterable[ReportRecord],
    *,
    newer_wins: bool = False,
) -> list[ReportRecord]:
    """Upsert ``incoming`` into ``existing`` by id.

    Merging the same incoming set twice gives the same result as merging it
    once. The result keeps first-seen order.

    Example:
        >>> merged = merge_reports(batch_one, batch_two)
        >>> len({r.id for r in merged}) == len(merged)
        True
    """
    by_id: dict[str, ReportRecord] = {}
    for record in existing:
        by_id[record.id] = merge_record(by_id.get(record.id), record, newer_wins=newer_wins)
    for record in incoming:
        by_id[record.id] = merge_record(by_id.get(record.id), record, newer_wins=newer_wins)
    return list(by_id.values())


__all__ = ["merge_record", "merge_reports"]
