"""Reconciliation session: the live roster of one event session.

A session owns every piece of mutable reconciliation state (roster,
baseline, cross-session cache, relocation registry, remembered group
assignments) for one event/session selection. Mutations are synchronous
and run to completion; `load` and `save` are the only suspension points.
While a save is in flight every mutation raises SaveInProgressError.

Derived state (duplicates, change set) is marked stale by every
mutation and recomputed on the next read, so it is never served stale.
"""

from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from pydantic import BaseModel, Field

from src.assignments.reconciler import apply_assignments, apply_assignments_to_cache
from src.cache.schemas import CacheEntry
from src.cache.session_cache import SessionParticipantCache
from src.config import Settings, get_settings
from src.duplicates.detector import (
    DuplicateDetector,
    DuplicateReport,
    NearMissHint,
    summarize,
)
from src.errors import (
    RecordNotFoundError,
    RelocationError,
    RemoteStoreError,
    SaveInProgressError,
    SelectionError,
)
from src.events.bus import EventBus
from src.events.types import ParticipantsLoaded, ParticipantsSaved, RelocationDropped
from src.identity.importer import parse_assignment_rows, parse_participant_rows
from src.identity.resolver import IdentityResolver
from src.identity.schemas import ResolutionReport, ResolutionScope
from src.models.participant import ParticipantRecord
from src.models.session import SessionInfo
from src.relocation.manager import RelocationManager, RelocationTarget
from src.session.commit import CommitPlan, build_commit_plan, generate_token
from src.session.ordering import import_sort_key, sort_roster
from src.store.base import RemoteStore, TokenAssignment
from src.tracking.baseline import Baseline, ChangeSet, diff, is_dirty, snapshot

logger = structlog.get_logger()

# Fields an operator may edit directly
EDITABLE_FIELDS = frozenset(
    {
        "name",
        "phonetic_name",
        "gender",
        "department",
        "group_label",
        "phone",
        "email",
        "guidance",
    }
)


class ImportOutcome(BaseModel):
    """Result of importing participant rows."""

    participant_count: int
    unchanged: bool = Field(description="Roster equals the last-committed one")
    resolution: ResolutionReport
    relocation_targets: list[RelocationTarget] = Field(default_factory=list)

    @property
    def message(self) -> str:
        if self.unchanged:
            return "既存のデータと同じ内容です。"
        return f"読み込み成功: {self.participant_count}名"


class AssignmentOutcome(BaseModel):
    """Result of applying a bulk group-assignment import."""

    matched_ids: set[str] = Field(default_factory=set)
    updated_ids: set[str] = Field(default_factory=set)
    cache_matched_ids: set[str] = Field(default_factory=set)
    message: str = ""


class SaveOutcome(BaseModel):
    """Result of a committed save."""

    participant_count: int
    relocated_count: int = 0
    dropped_keys: list[str] = Field(default_factory=list)
    changes: ChangeSet

    @property
    def message(self) -> str:
        text = "参加者リストを保存しました。"
        if self.dropped_keys:
            text += (
                f" 移動先の日程が見つからない参加者が{len(self.dropped_keys)}名います。"
                "移動先を選び直してください。"
            )
        return text


class ReconciliationSession:
    """Live reconciliation state for one event session.

    Example:
        session = ReconciliationSession("spring", "day1", store)
        await session.load()
        session.import_rows(rows)
        session.set_relocation_destination(key, "day2", "3")
        await session.save()
    """

    def __init__(
        self,
        event_id: str,
        session_id: str,
        store: RemoteStore,
        *,
        settings: Settings | None = None,
        bus: EventBus | None = None,
    ):
        """Initialize session.

        Args:
            event_id: Selected event
            session_id: Selected session of that event
            store: Remote participant store
            settings: Settings (defaults to the cached application settings)
            bus: Optional event bus for operator notifications

        Raises:
            SelectionError: If the event or session is not selected
        """
        if not event_id or not session_id:
            raise SelectionError("イベントと日程を選択してください。")
        self.event_id = event_id
        self.session_id = session_id
        self._store = store
        self._settings = settings or get_settings()
        self._bus = bus
        self._resolver = IdentityResolver(min_width=self._settings.record_id_min_width)
        self._detector = DuplicateDetector()

        self.cache = SessionParticipantCache(event_id)
        self.relocations = RelocationManager(self.cache, session_id)
        self.sessions: dict[str, SessionInfo] = {}
        self.tokens: dict[str, TokenAssignment] = {}
        self.remembered_assignments: dict[str, str] = {}
        self.baseline: Baseline = snapshot([])
        self.saving = False
        self.loaded = False

        self._roster: list[ParticipantRecord] = []
        self._duplicates: DuplicateReport | None = None
        self._change_set: ChangeSet | None = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def roster(self) -> list[ParticipantRecord]:
        """The live roster (a copy; mutate through session operations)."""
        return list(self._roster)

    @property
    def scope(self) -> ResolutionScope:
        return ResolutionScope(event_id=self.event_id, session_id=self.session_id)

    @property
    def session_labels(self) -> dict[str, str]:
        return {sid: info.display_label for sid, info in self.sessions.items()}

    @property
    def duplicates(self) -> DuplicateReport:
        """Duplicate matches and groups for the current roster and cache."""
        if self._duplicates is None:
            self._duplicates = self._detector.detect(
                self._roster, self.cache, self.session_id
            )
        return self._duplicates

    @property
    def change_set(self) -> ChangeSet:
        """Diff of the live roster against the baseline."""
        if self._change_set is None:
            self._change_set = diff(self._roster, self.baseline)
        return self._change_set

    @property
    def is_dirty(self) -> bool:
        """True while the roster differs from the baseline."""
        return is_dirty(self._roster, self.baseline)

    @property
    def has_unsaved_changes(self) -> bool:
        """Roster edits or pending relocations waiting for a save."""
        return self.is_dirty or bool(self.relocations.pending)

    @property
    def relocation_targets(self) -> list[RelocationTarget]:
        return self.relocations.targets(self._roster)

    @property
    def near_misses(self) -> list[NearMissHint]:
        return self._detector.find_near_misses(
            self._roster,
            self.cache,
            self.session_id,
            self._settings.near_miss_threshold,
        )

    def summary(self) -> str:
        """Roster summary line including duplicate candidates."""
        return summarize(
            self.duplicates, len(self._roster), self.session_id, self.session_labels
        )

    def find(self, key: str) -> ParticipantRecord:
        """Look up a live record by record ID or row key.

        Raises:
            RecordNotFoundError: If no record matches
        """
        return self._roster[self._index_of(key)]

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self, *, reset_assignments: bool = False) -> None:
        """Fetch the event from the remote store and rebuild all state.

        Remote reads complete before anything in memory changes, so a
        failed load leaves the session as it was.

        Args:
            reset_assignments: Forget remembered bulk assignments

        Raises:
            SaveInProgressError: If a save is in flight
        """
        self._ensure_idle()
        event = await self._store.fetch_event(self.event_id)
        tokens = await self._store.fetch_tokens()

        if reset_assignments:
            self.remembered_assignments = {}
        self.sessions = {info.session_id: info for info in event.sessions}
        self.tokens = dict(tokens)
        self.cache.rebuild(event.participants)

        branch = event.participants.get(self.session_id) or {}
        loaded = sort_roster(
            ParticipantRecord.from_remote(fields, fallback_id=key)
            for key, fields in branch.items()
        )
        self.baseline = snapshot(loaded)
        self._roster = loaded
        if self.remembered_assignments:
            result = apply_assignments(self._roster, self.remembered_assignments)
            self._roster = sort_roster(result.roster)
            apply_assignments_to_cache(self.cache, self.remembered_assignments)

        self.relocations = RelocationManager(self.cache, self.session_id)
        self.loaded = True
        self._after_mutation()

        logger.info(
            "participants loaded",
            event_id=self.event_id,
            session_id=self.session_id,
            count=len(self._roster),
        )
        await self._publish(
            ParticipantsLoaded(
                event_id=self.event_id,
                session_id=self.session_id,
                participant_count=len(self._roster),
                duplicate_group_count=len(self.duplicates.groups),
            )
        )

    async def discard_changes(self) -> None:
        """Drop all unsaved edits and reload the last-committed state."""
        await self.load(reset_assignments=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def import_rows(self, rows: Sequence[Sequence[str]]) -> ImportOutcome:
        """Replace the roster with imported participant rows.

        Rows are parsed and validated before any state changes. Imported
        rows keep IDs they carry, reuse the IDs of matching existing
        records, or receive new IDs; fields missing from the import are
        taken from the existing record with the same ID.

        Args:
            rows: Header row followed by data rows

        Returns:
            ImportOutcome

        Raises:
            ImportValidationError: If the rows are unusable
            SaveInProgressError: If a save is in flight
        """
        self._ensure_idle()
        parsed = sorted(parse_participant_rows(rows), key=import_sort_key)
        resolved, report = self._resolver.resolve_with_report(
            parsed, self._roster, self.scope
        )
        existing = {r.record_id: r for r in self._roster if r.record_id}
        merged = [_merge_import(row, existing.get(row.record_id)) for row in resolved]

        # Imports replace the roster wholesale; drafts and intents refer
        # to rows that no longer exist
        self.relocations.clear()
        self._roster = sort_roster(merged)
        self._after_mutation()

        outcome = ImportOutcome(
            participant_count=len(self._roster),
            unchanged=not self.is_dirty,
            resolution=report,
            relocation_targets=self.relocation_targets,
        )
        logger.info(
            "participants imported",
            session_id=self.session_id,
            count=outcome.participant_count,
            minted=len(report.minted_ids),
            reused=len(report.reused_ids),
        )
        return outcome

    def apply_assignment_rows(
        self, rows: Sequence[Sequence[str]]
    ) -> AssignmentOutcome:
        """Apply a bulk group-assignment import to the roster and cache.

        The assignments are remembered for the event, so a reload
        re-applies them until they are saved or discarded.

        Raises:
            ImportValidationError: If the rows are unusable
            SaveInProgressError: If a save is in flight
        """
        self._ensure_idle()
        mapping = parse_assignment_rows(rows)
        result = apply_assignments(self._roster, mapping)
        self.remembered_assignments.update(mapping)
        self._roster = sort_roster(result.roster)
        self.cache.sync_current(self.session_id, self._roster)
        cache_matched = apply_assignments_to_cache(self.cache, mapping)
        self._after_mutation()

        message = result.summary(len(mapping), cache_matched)
        logger.info("assignments applied", session_id=self.session_id, summary=message)
        return AssignmentOutcome(
            matched_ids=result.matched_ids,
            updated_ids=result.updated_ids,
            cache_matched_ids=cache_matched,
            message=message,
        )

    def update_record(self, key: str, **changes: Any) -> ParticipantRecord:
        """Edit fields of one record.

        Args:
            key: Record ID or row key
            **changes: Field values (see EDITABLE_FIELDS)

        Returns:
            The updated record

        Raises:
            RecordNotFoundError: If no record matches
            ValueError: If a field is not editable
        """
        self._ensure_idle()
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields are not editable: {', '.join(sorted(unknown))}")
        index = self._index_of(key)
        updated = self._roster[index].evolve(**changes)
        if updated.is_relocated:
            self.relocations.refresh_preview(updated)
        self._replace(index, updated)
        logger.debug("participant updated", key=key, fields=sorted(changes))
        return updated

    def remove_record(self, key: str) -> ParticipantRecord:
        """Remove one record from the roster.

        Raises:
            RecordNotFoundError: If no record matches
        """
        self._ensure_idle()
        index = self._index_of(key)
        removed = self._roster.pop(index)
        self.relocations.forget(removed.record_key)
        self._after_mutation()
        logger.debug("participant removed", key=removed.record_key)
        return removed

    def quick_relocate(self, key: str) -> ParticipantRecord:
        """Mark a record relocated; a destination is chosen afterwards."""
        self._ensure_idle()
        index = self._index_of(key)
        updated = self.relocations.quick_relocate(self._roster[index])
        self._replace(index, updated)
        return updated

    def quick_cancel(self, key: str) -> ParticipantRecord:
        """Mark a record cancelled."""
        self._ensure_idle()
        index = self._index_of(key)
        updated = self.relocations.quick_cancel(self._roster[index])
        self._replace(index, updated)
        return updated

    def set_relocation_destination(
        self, key: str, destination_session_id: str, group_label: str = ""
    ) -> ParticipantRecord:
        """Choose (or clear, with "") where a relocated record moves to.

        Raises:
            RecordNotFoundError: If no record matches
            RelocationError: If the destination is unknown or the source
        """
        self._ensure_idle()
        if destination_session_id and destination_session_id not in self.sessions:
            raise RelocationError(
                f"移動先の日程が見つかりません。(session={destination_session_id})"
            )
        index = self._index_of(key)
        updated = self.relocations.set_destination(
            self._roster[index], destination_session_id, group_label
        )
        self._replace(index, updated)
        return updated

    def revert_relocations(self, keys: Iterable[str] | None = None) -> bool:
        """Undo pending relocations and quick actions.

        Args:
            keys: Record IDs or row keys to revert (everything pending when None)

        Returns:
            True if anything was reverted
        """
        self._ensure_idle()
        drafts = dict(self.relocations.drafts)
        targets = list(keys) if keys is not None else None
        before = list(self._roster)
        reverted = self.relocations.revert(self._roster, targets)
        changed = reverted != before

        for key, draft in drafts.items():
            if key in self.relocations.drafts or key not in self.remembered_assignments:
                continue
            if draft.record.group_label:
                self.remembered_assignments[key] = draft.record.group_label
            else:
                del self.remembered_assignments[key]

        self._roster = sort_roster(reverted)
        self._after_mutation()
        return changed

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self) -> SaveOutcome:
        """Commit the roster and pending relocations to the remote store.

        Returns:
            SaveOutcome

        Raises:
            SaveInProgressError: If another save is in flight
            RemoteStoreError: If the store rejects the write (state unchanged)
        """
        return await self._commit(self._roster, dict(self.relocations.pending))

    async def clear_all(self) -> SaveOutcome:
        """Delete every participant of the session and save immediately.

        On failure the roster is left exactly as before.
        """
        return await self._commit([], {})

    def plan_commit(
        self,
        roster: Sequence[ParticipantRecord] | None = None,
        pending: dict | None = None,
    ) -> CommitPlan:
        """Compute the commit for the current (or given) state without writing."""
        length = self._settings.share_token_length
        return build_commit_plan(
            event_id=self.event_id,
            session_id=self.session_id,
            roster=self._roster if roster is None else roster,
            pending=self.relocations.pending if pending is None else pending,
            sessions=self.sessions,
            cache=self.cache,
            tokens=self.tokens,
            resolver=self._resolver,
            token_factory=lambda taken: generate_token(taken, length),
        )

    async def _commit(
        self, roster: Sequence[ParticipantRecord], pending: dict
    ) -> SaveOutcome:
        self._ensure_idle()
        self.saving = True
        try:
            changes = diff(roster, self.baseline)
            plan = self.plan_commit(roster, pending)
            result = await self._store.write(plan.payload)
            if not result.success:
                raise RemoteStoreError(
                    result.error_message or "参加者リストの保存に失敗しました。"
                )
            self._apply_commit(plan)
        finally:
            self.saving = False

        logger.info(
            "participants saved",
            event_id=self.event_id,
            session_id=self.session_id,
            count=len(plan.roster),
            relocated=len(plan.committed),
            dropped=len(plan.dropped),
        )
        for intent in plan.dropped:
            await self._publish(
                RelocationDropped(
                    event_id=self.event_id,
                    session_id=self.session_id,
                    record_key=intent.record_key,
                    destination_session_id=intent.destination_session_id,
                )
            )
        await self._publish(
            ParticipantsSaved(
                event_id=self.event_id,
                session_id=self.session_id,
                participant_count=len(plan.roster),
                relocated_count=len(plan.committed),
                added_count=len(changes.added),
                updated_count=len(changes.updated),
                removed_count=len(changes.removed),
            )
        )
        return SaveOutcome(
            participant_count=len(plan.roster),
            relocated_count=len(plan.committed),
            dropped_keys=[intent.record_key for intent in plan.dropped],
            changes=changes,
        )

    def _apply_commit(self, plan: CommitPlan) -> None:
        """Adopt the committed state. Runs only after a successful write."""
        self.relocations.clear()
        for destination, records in plan.destination_records.items():
            moved = {r.record_id for r in records}
            entries = [
                e for e in self.cache.slice(destination) if e.record_id not in moved
            ]
            entries.extend(CacheEntry.from_record(r, destination) for r in records)
            self.cache.replace_slice(destination, entries)
        for session_id, count in plan.participant_counts.items():
            info = self.sessions.get(session_id) or SessionInfo(session_id=session_id)
            self.sessions[session_id] = info.model_copy(
                update={"participant_count": count}
            )
        self.tokens = dict(plan.tokens)
        self._roster = sort_roster(plan.roster)
        self.baseline = snapshot(self._roster)
        self._after_mutation()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_idle(self) -> None:
        if self.saving:
            raise SaveInProgressError("保存処理が進行中です。完了までお待ちください。")

    def _index_of(self, key: str) -> int:
        for index, record in enumerate(self._roster):
            if key and key in (record.record_id, record.row_key):
                return index
        raise RecordNotFoundError(key)

    def _replace(self, index: int, record: ParticipantRecord) -> None:
        self._roster[index] = record
        self._after_mutation()

    def _after_mutation(self) -> None:
        """Keep side tables consistent and mark derived state stale."""
        live = {r.record_key: r for r in self._roster}
        for key in list(self.relocations.pending):
            record = live.get(key)
            if record is None or not record.is_relocated:
                self.relocations.drop_intent(key)
        self.cache.sync_current(self.session_id, self._roster)
        self._duplicates = None
        self._change_set = None

    async def _publish(self, event) -> None:
        if self._bus is not None:
            await self._bus.publish(event)


def _merge_import(
    row: ParticipantRecord, existing: ParticipantRecord | None
) -> ParticipantRecord:
    """Fill fields an import left blank from the existing record."""
    if existing is None:
        return row
    return existing.evolve(
        name=row.name or existing.name,
        phonetic_name=row.phonetic_name or existing.phonetic_name,
        gender=row.gender or existing.gender,
        department=row.department or existing.department,
        group_label=row.group_label or existing.group_label,
        phone=row.phone or existing.phone,
        email=row.email or existing.email,
    ).without_destination()
