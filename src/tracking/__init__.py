"""Baseline snapshots and change tracking for the live roster."""

from src.tracking.baseline import (
    TRACKED_FIELDS,
    Baseline,
    ChangeSet,
    FieldChange,
    RecordSnapshot,
    UpdatedRecord,
    diff,
    is_dirty,
    signature,
    snapshot,
)

__all__ = [
    "TRACKED_FIELDS",
    "Baseline",
    "ChangeSet",
    "FieldChange",
    "RecordSnapshot",
    "UpdatedRecord",
    "diff",
    "is_dirty",
    "signature",
    "snapshot",
]
