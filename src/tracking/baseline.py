"""Baseline snapshots and diffs of the participant roster.

The baseline is the roster as it was last committed. Every live edit is
compared against it to drive the save/discard controls and the change
preview panel.
"""

import json
from collections.abc import Sequence
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from src.models.participant import ParticipantRecord


class TrackedField(NamedTuple):
    label: str
    attribute: str
    display_label: str


# Fields compared by diff, in display order
TRACKED_FIELDS: tuple[TrackedField, ...] = (
    TrackedField("name", "name", "氏名"),
    TrackedField("phoneticName", "phonetic_name", "フリガナ"),
    TrackedField("gender", "gender", "性別"),
    TrackedField("department", "department", "学部学科"),
    TrackedField("groupLabel", "group_label", "班番号"),
    TrackedField("phone", "phone", "携帯電話"),
    TrackedField("email", "email", "メールアドレス"),
)

# Fields serialized into the roster signature, in order
SIGNATURE_FIELDS = (
    "record_id",
    "name",
    "phonetic_name",
    "gender",
    "group_label",
    "department",
    "phone",
    "email",
)


class RecordSnapshot(BaseModel):
    """Tracked fields of one record at snapshot time."""

    model_config = ConfigDict(frozen=True)

    record_id: str = ""
    row_key: str = ""
    name: str = ""
    phonetic_name: str = ""
    gender: str = ""
    department: str = ""
    group_label: str = ""
    phone: str = ""
    email: str = ""

    @classmethod
    def of(cls, record: ParticipantRecord) -> "RecordSnapshot":
        return cls(
            record_id=record.record_id,
            row_key=record.row_key,
            name=record.name,
            phonetic_name=record.phonetic_name,
            gender=record.gender,
            department=record.department,
            group_label=record.group_label,
            phone=record.phone,
            email=record.email,
        )


class Baseline(BaseModel):
    """Last-committed roster: full records, tracked snapshots and signature."""

    model_config = ConfigDict(frozen=True)

    records: tuple[ParticipantRecord, ...] = Field(default_factory=tuple)
    snapshots: tuple[RecordSnapshot, ...] = Field(default_factory=tuple)
    signature: str = Field(default="[]")


class FieldChange(BaseModel):
    """A tracked field whose value differs from the baseline."""

    model_config = ConfigDict(frozen=True)

    field_label: str = Field(description="Stable field name, e.g. groupLabel")
    display_label: str = Field(description="Operator-facing field caption")
    previous: str
    current: str


class UpdatedRecord(BaseModel):
    """A record present in both rosters with changed tracked fields."""

    model_config = ConfigDict(frozen=True)

    previous: RecordSnapshot
    current: RecordSnapshot
    field_changes: tuple[FieldChange, ...]


class ChangeSet(BaseModel):
    """Added/updated/removed decomposition of live roster vs. baseline."""

    model_config = ConfigDict(frozen=True)

    added: tuple[RecordSnapshot, ...] = Field(default_factory=tuple)
    updated: tuple[UpdatedRecord, ...] = Field(default_factory=tuple)
    removed: tuple[RecordSnapshot, ...] = Field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.updated) + len(self.removed)

    def change_for(self, key: str) -> str | None:
        """Change kind ("added"/"updated") of a live row, by record ID or row key."""
        for snapshot in self.added:
            if key in (snapshot.record_id, snapshot.row_key):
                return "added"
        for update in self.updated:
            if key in (update.current.record_id, update.current.row_key):
                return "updated"
        return None

    def summary(self) -> str:
        """Short count line, e.g. "更新 1件 / 新規 2件"."""
        parts = []
        if self.updated:
            parts.append(f"更新 {len(self.updated)}件")
        if self.added:
            parts.append(f"新規 {len(self.added)}件")
        if self.removed:
            parts.append(f"削除 {len(self.removed)}件")
        return " / ".join(parts)


def signature(roster: Sequence[ParticipantRecord]) -> str:
    """Serialize the tracked content of a roster, in roster order.

    Two rosters with equal signatures are treated as identical for
    save-button gating.
    """
    rows = [[getattr(record, f) for f in SIGNATURE_FIELDS] for record in roster]
    return json.dumps(rows, ensure_ascii=False, separators=(",", ":"))


def snapshot(roster: Sequence[ParticipantRecord]) -> Baseline:
    """Capture a roster as the new baseline."""
    return Baseline(
        records=tuple(roster),
        snapshots=tuple(RecordSnapshot.of(record) for record in roster),
        signature=signature(roster),
    )


def field_changes(
    previous: RecordSnapshot, current: RecordSnapshot
) -> tuple[FieldChange, ...]:
    """List tracked fields whose values differ between two snapshots."""
    changes = []
    for tracked in TRACKED_FIELDS:
        before = getattr(previous, tracked.attribute)
        after = getattr(current, tracked.attribute)
        if before != after:
            changes.append(
                FieldChange(
                    field_label=tracked.label,
                    display_label=tracked.display_label,
                    previous=before,
                    current=after,
                )
            )
    return tuple(changes)


def diff(roster: Sequence[ParticipantRecord], baseline: Baseline) -> ChangeSet:
    """Compare the live roster against the baseline.

    Records are paired by record ID first and by row key second. Live
    records without a partner are added, baseline records without a
    partner are removed, and paired records with differing tracked
    fields are updated.

    Args:
        roster: Live roster
        baseline: Last-committed baseline

    Returns:
        ChangeSet (pure; calling twice yields equal results)
    """
    by_id: dict[str, int] = {}
    by_row_key: dict[str, int] = {}
    for index, previous in enumerate(baseline.snapshots):
        if previous.record_id:
            by_id.setdefault(previous.record_id, index)
        if previous.row_key:
            by_row_key.setdefault(previous.row_key, index)

    matched: set[int] = set()
    added: list[RecordSnapshot] = []
    updated: list[UpdatedRecord] = []
    for record in roster:
        current = RecordSnapshot.of(record)
        index = by_id.get(current.record_id) if current.record_id else None
        if index is None or index in matched:
            index = by_row_key.get(current.row_key)
        if index is None or index in matched:
            added.append(current)
            continue
        matched.add(index)
        previous = baseline.snapshots[index]
        if changes := field_changes(previous, current):
            updated.append(
                UpdatedRecord(previous=previous, current=current, field_changes=changes)
            )

    removed = [
        previous
        for index, previous in enumerate(baseline.snapshots)
        if index not in matched
    ]
    return ChangeSet(added=tuple(added), updated=tuple(updated), removed=tuple(removed))


def is_dirty(roster: Sequence[ParticipantRecord], baseline: Baseline) -> bool:
    """True when the live roster differs from the baseline."""
    return signature(roster) != baseline.signature
