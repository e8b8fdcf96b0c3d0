"""Display ordering of the participant roster."""

import math
from collections.abc import Iterable

from src.models.participant import ParticipantRecord, ParticipantStatus
from src.normalize import normalize_group_label, normalize_key

STATUS_RANK = {
    ParticipantStatus.ACTIVE: 0,
    ParticipantStatus.RELOCATED: 0,
    ParticipantStatus.CANCELLED: 1,
}


def _text_key(value: str) -> tuple[int, str]:
    """Blank values sort after any text."""
    text = normalize_key(value)
    return (1, "") if not text else (0, text.casefold())


def _group_key(label: str) -> tuple[int, float, str]:
    """Numeric labels first (by value), then text labels, then blanks."""
    text = normalize_group_label(label)
    if not text:
        return (2, math.inf, "")
    try:
        value = float(text)
    except ValueError:
        value = math.nan
    if math.isfinite(value):
        return (0, value, text)
    return (1, math.inf, text.casefold())


def roster_sort_key(record: ParticipantRecord) -> tuple:
    return (
        STATUS_RANK[record.status],
        _group_key(record.group_label),
        _text_key(record.department),
        _text_key(record.phonetic_name),
        _text_key(record.name),
        _text_key(record.record_id),
    )


def sort_roster(records: Iterable[ParticipantRecord]) -> list[ParticipantRecord]:
    """Sort records for display.

    Cancelled records go last. Within a status rank records are grouped
    by group label, then ordered by department, reading, name and ID.
    """
    return sorted(records, key=roster_sort_key)


def import_sort_key(record: ParticipantRecord) -> tuple:
    """Order of freshly imported rows before IDs are minted."""
    return (
        _text_key(record.department),
        _text_key(record.phonetic_name or record.name),
        _text_key(record.name),
    )
