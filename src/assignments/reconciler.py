"""Bulk group-assignment reconciliation.

Applies a record ID -> group label map to the live roster and to the
cross-session cache. Matched IDs ("rows identified") and updated IDs
("rows that changed") are reported separately to the operator.
"""

from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, Field

from src.cache.session_cache import SessionParticipantCache
from src.models.participant import ParticipantRecord, derive_status
from src.normalize import normalize_group_label

logger = structlog.get_logger()


class AssignmentResult(BaseModel):
    """Outcome of applying an assignment map to a roster."""

    roster: list[ParticipantRecord] = Field(default_factory=list)
    matched_ids: set[str] = Field(
        default_factory=set, description="IDs found in the map"
    )
    updated_ids: set[str] = Field(
        default_factory=set, description="IDs whose group label changed"
    )

    def summary(self, requested: int, cache_matched: set[str] | None = None) -> str:
        """Operator message, e.g. "班番号を照合: 3名 / 変更: 1件 / 未一致: 1名".

        Args:
            requested: Number of IDs in the imported map
            cache_matched: IDs matched in other sessions' cache slices
        """
        identified = self.matched_ids | (cache_matched or set())
        parts = [
            f"班番号を照合: {len(identified)}名",
            f"変更: {len(self.updated_ids)}件",
        ]
        if (unmatched := requested - len(identified)) > 0:
            parts.append(f"未一致: {unmatched}名")
        return " / ".join(parts)


def _assignment_key(
    mapping: Mapping[str, str], record_id: str, legacy_id: str = ""
) -> str:
    """Map key for a record: its ID, else its legacy ID, else ""."""
    if record_id and record_id in mapping:
        return record_id
    if legacy_id and legacy_id in mapping:
        return legacy_id
    return ""


def apply_assignments(
    roster: Sequence[ParticipantRecord], mapping: Mapping[str, str]
) -> AssignmentResult:
    """Apply group labels to the roster.

    A record is left untouched when its ID is absent from the map or its
    label already equals the mapped value. Otherwise a new record with
    the new label (and the status it implies) replaces it.

    Args:
        roster: Live roster
        mapping: Record ID -> group label

    Returns:
        AssignmentResult with the new roster and the matched/updated IDs
    """
    result = AssignmentResult()
    if not mapping:
        result.roster = list(roster)
        return result

    for record in roster:
        key = _assignment_key(mapping, record.record_id, record.legacy_record_id)
        if not key:
            result.roster.append(record)
            continue
        result.matched_ids.add(key)
        label = normalize_group_label(mapping[key])
        if record.group_label == label:
            result.roster.append(record)
            continue
        result.updated_ids.add(key)
        result.roster.append(record.with_group_label(label))

    logger.debug(
        "assignments applied to roster",
        matched=len(result.matched_ids),
        updated=len(result.updated_ids),
    )
    return result


def apply_assignments_to_cache(
    cache: SessionParticipantCache, mapping: Mapping[str, str]
) -> set[str]:
    """Apply group labels to every session slice of the cache.

    Relocation previews are left alone; they follow their pending intent.

    Args:
        cache: Cross-session cache (updated in place)
        mapping: Record ID -> group label

    Returns:
        IDs found in the map
    """
    matched: set[str] = set()
    if not mapping:
        return matched

    for session_id in cache.session_ids():
        entries = []
        for entry in cache.slice(session_id):
            key = _assignment_key(mapping, entry.record_id)
            if not key or entry.is_preview:
                entries.append(entry)
                continue
            matched.add(key)
            label = normalize_group_label(mapping[key])
            entries.append(
                entry.model_copy(
                    update={"group_label": label, "status": derive_status(label)}
                )
            )
        cache.replace_slice(session_id, entries)
    return matched
