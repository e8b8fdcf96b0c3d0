"""Relocation transactions: moving participants between sessions.

Per record the operator drives this state machine:

    active -> relocated (no destination) -> relocated (destination chosen)

Choosing a destination creates a RelocationIntent and mirrors a preview
of the moved record into the destination's cache slice. Saving commits
every intent as one unit; reverting removes the previews and restores
the draft snapshots captured by the first quick action on each record.
"""

from collections.abc import Iterable, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.cache.session_cache import SessionParticipantCache
from src.config import settings
from src.errors import RelocationError
from src.models.participant import ParticipantRecord, new_row_key
from src.normalize import normalize_group_label, normalize_text

logger = structlog.get_logger()


class RelocationIntent(BaseModel):
    """One pending move of a record to another session."""

    model_config = ConfigDict(frozen=True)

    record_key: str = Field(description="Record ID, or row key for unsaved rows")
    source_session_id: str
    destination_session_id: str
    destination_group_label: str = Field(default="")
    snapshot_of_origin: ParticipantRecord = Field(
        description="The record as it stood when the move was drafted"
    )


class DraftSnapshot(BaseModel):
    """Pre-edit copy of a record, restored verbatim on revert."""

    model_config = ConfigDict(frozen=True)

    key: str
    record: ParticipantRecord


class RelocationTarget(BaseModel):
    """A relocated record awaiting (or holding) a destination."""

    record_key: str
    row_key: str
    name: str = ""
    department: str = ""
    destination_session_id: str = ""
    destination_group_label: str = ""
    has_intent: bool = False


class RelocationManager:
    """Holds pending relocations and draft snapshots for one session.

    Previews are written into the shared cache as soon as an intent is
    created or superseded, so duplicate detection sees the speculative
    destination state before anything is committed.
    """

    def __init__(self, cache: SessionParticipantCache, source_session_id: str):
        """Initialize manager.

        Args:
            cache: Cross-session cache receiving relocation previews
            source_session_id: Session whose roster is being edited
        """
        self._cache = cache
        self.source_session_id = source_session_id
        self.relocate_label = settings.relocate_label
        self.cancel_label = settings.cancel_label
        self.pending: dict[str, RelocationIntent] = {}
        self.drafts: dict[str, DraftSnapshot] = {}

    def store_draft(self, record: ParticipantRecord) -> bool:
        """Capture the pre-edit copy of a record unless one already exists.

        Returns:
            True if a new draft was stored
        """
        key = record.record_key
        if not key or key in self.drafts:
            return False
        self.drafts[key] = DraftSnapshot(key=key, record=record)
        return True

    def quick_relocate(self, record: ParticipantRecord) -> ParticipantRecord:
        """Mark a record relocated with no destination chosen yet."""
        self.store_draft(record)
        self.drop_intent(record.record_key)
        updated = record.with_group_label(self.relocate_label).without_destination()
        logger.debug("relocation drafted", record_key=record.record_key)
        return updated

    def quick_cancel(self, record: ParticipantRecord) -> ParticipantRecord:
        """Mark a record cancelled, abandoning any pending relocation."""
        self.store_draft(record)
        self.drop_intent(record.record_key)
        updated = record.with_group_label(self.cancel_label)
        logger.debug("participant cancelled", record_key=record.record_key)
        return updated

    def set_destination(
        self,
        record: ParticipantRecord,
        destination_session_id: str,
        group_label: str = "",
    ) -> ParticipantRecord:
        """Choose (or clear) the destination of a relocation.

        A record that is not yet relocated is first put through
        `quick_relocate`. An empty destination removes the preview and
        intent but leaves the record relocated, so the operator is
        prompted again. A new destination supersedes any previous intent.

        Args:
            record: Record in the live roster
            destination_session_id: Target session ("" to clear)
            group_label: Group label in the target session

        Returns:
            The updated record

        Raises:
            RelocationError: If the destination is the source session
        """
        destination = normalize_text(destination_session_id)
        if destination and destination == self.source_session_id:
            raise RelocationError(
                "移動先に現在の日程は指定できません。"
                f"(session={destination})"
            )
        if not record.is_relocated:
            record = self.quick_relocate(record)

        key = record.record_key
        self.drop_intent(key)
        if not destination:
            return record.without_destination()

        label = normalize_group_label(group_label)
        intent = RelocationIntent(
            record_key=key,
            source_session_id=self.source_session_id,
            destination_session_id=destination,
            destination_group_label=label,
            snapshot_of_origin=record,
        )
        self.pending[key] = intent
        self._cache.upsert_preview(
            record,
            source_session_id=self.source_session_id,
            destination_session_id=destination,
            destination_group_label=label,
        )
        logger.debug(
            "relocation destination set",
            record_key=key,
            destination_session_id=destination,
            group_label=label,
        )
        return record.with_destination(destination, label)

    def refresh_preview(self, record: ParticipantRecord) -> bool:
        """Mirror an edited record into the preview of its pending intent.

        Returns:
            True if the record has an intent and its preview was rewritten
        """
        intent = self.pending.get(record.record_key)
        if intent is None:
            return False
        self._cache.upsert_preview(
            record,
            source_session_id=self.source_session_id,
            destination_session_id=intent.destination_session_id,
            destination_group_label=intent.destination_group_label,
        )
        return True

    def revert(
        self,
        roster: Sequence[ParticipantRecord],
        keys: Iterable[str] | None = None,
    ) -> list[ParticipantRecord]:
        """Undo pending relocations and quick actions.

        Previews are removed, intents dropped and destinations cleared;
        records with a draft snapshot are restored to it verbatim.

        Args:
            roster: Live roster
            keys: Record IDs or row keys to revert (all pending/drafted when None)

        Returns:
            The new roster
        """
        if keys is None:
            targets = list(dict.fromkeys([*self.pending, *self.drafts]))
        else:
            targets = [
                _record_key_of(roster, normalize_text(k))
                for k in keys
                if normalize_text(k)
            ]

        result = list(roster)
        for key in targets:
            self.drop_intent(key)
            draft = self.drafts.pop(key, None)
            index = _find(result, key, draft)
            if index is None:
                continue
            if draft is not None:
                result[index] = draft.record
            else:
                result[index] = result[index].without_destination()

        if targets:
            logger.debug("relocations reverted", count=len(targets))
        return result

    def forget(self, key: str) -> None:
        """Drop everything held for a record removed from the roster."""
        self.drop_intent(key)
        self.drafts.pop(key, None)

    def clear(self) -> None:
        """Remove every preview and forget all intents and drafts."""
        for key in list(self.pending):
            self.drop_intent(key)
        self.drafts.clear()

    def targets(self, roster: Sequence[ParticipantRecord]) -> list[RelocationTarget]:
        """Relocated records of the roster, for the relocation review dialog."""
        return [
            RelocationTarget(
                record_key=record.record_key,
                row_key=record.row_key,
                name=record.name,
                department=record.department,
                destination_session_id=record.destination_session_id,
                destination_group_label=record.destination_group_label,
                has_intent=record.record_key in self.pending,
            )
            for record in roster
            if record.is_relocated
        ]

    def drop_intent(self, key: str) -> RelocationIntent | None:
        """Remove a record's intent and its preview, keeping any draft."""
        intent = self.pending.pop(key, None)
        if intent is not None:
            self._cache.remove_preview(key, intent.destination_session_id)
        return intent


def build_destination_record(
    intent: RelocationIntent, origin: ParticipantRecord | None = None
) -> ParticipantRecord:
    """Materialize the record a committed relocation writes to its destination.

    Identity, contact and guidance fields are copied from the origin and
    the destination's group label is substituted.

    Args:
        intent: Pending relocation being committed
        origin: Current origin record (defaults to the intent's snapshot)

    Returns:
        New record for the destination session
    """
    source = origin or intent.snapshot_of_origin
    return ParticipantRecord(
        record_id=source.record_id,
        row_key=new_row_key("relocated"),
        legacy_record_id=source.legacy_record_id,
        name=source.name,
        phonetic_name=source.phonetic_name,
        gender=source.gender,
        department=source.department,
        phone=source.phone,
        email=source.email,
        share_token=source.share_token,
        guidance=source.guidance,
        group_label=intent.destination_group_label,
    )


def _find(
    roster: Sequence[ParticipantRecord], key: str, draft: DraftSnapshot | None
) -> int | None:
    """Roster index of a record by record key, falling back to the draft's row key."""
    row_key = draft.record.row_key if draft is not None else ""
    for index, record in enumerate(roster):
        if record.record_key == key:
            return index
    for index, record in enumerate(roster):
        if row_key and record.row_key == row_key:
            return index
    return None


def _record_key_of(roster: Sequence[ParticipantRecord], key: str) -> str:
    """Record key of the roster record matching a record ID or row key."""
    for record in roster:
        if key in (record.record_id, record.row_key):
            return record.record_key
    return key
