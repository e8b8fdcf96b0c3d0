"""Per-event cache of what every session's roster looks like.

The cache is rebuilt from the remote snapshot on load. Afterwards the
active session's slice is rewritten after every local roster mutation,
and destination slices gain or lose one preview entry per pending
relocation, so duplicate detection sees the speculative state.
"""

from collections.abc import Iterable, Iterator, Mapping

import structlog

from src.cache.schemas import CacheEntry
from src.models.participant import ParticipantRecord, ParticipantStatus
from src.normalize import normalize_text

logger = structlog.get_logger()


class SessionParticipantCache:
    """Mapping of session ID to the cache entries of that session."""

    def __init__(self, event_id: str = ""):
        """Initialize an empty cache.

        Args:
            event_id: Event the cached sessions belong to
        """
        self.event_id = event_id
        self._slices: dict[str, list[CacheEntry]] = {}

    def rebuild(self, snapshot: Mapping[str, Mapping[str, dict]] | None) -> None:
        """Replace the whole cache with the remote event snapshot.

        Args:
            snapshot: Tree of session ID -> record key -> raw record fields
        """
        self._slices = {}
        for session_id, branch in (snapshot or {}).items():
            session_key = normalize_text(session_id)
            if not isinstance(branch, Mapping):
                self._slices[session_key] = []
                continue
            self._slices[session_key] = [
                CacheEntry.from_record(
                    ParticipantRecord.from_remote(fields, fallback_id=record_key),
                    session_key,
                )
                for record_key, fields in branch.items()
            ]
        logger.debug(
            "participant cache rebuilt",
            event_id=self.event_id,
            sessions=len(self._slices),
            entries=sum(len(s) for s in self._slices.values()),
        )

    def sync_current(
        self, session_id: str, roster: Iterable[ParticipantRecord]
    ) -> None:
        """Rewrite the active session's slice from the live roster.

        Args:
            session_id: Active session ID
            roster: Live roster of that session
        """
        self._slices[session_id] = [
            CacheEntry.from_record(record, session_id, is_current=True)
            for record in roster
        ]

    def upsert_preview(
        self,
        origin: ParticipantRecord,
        *,
        source_session_id: str,
        destination_session_id: str,
        destination_group_label: str,
    ) -> CacheEntry:
        """Insert (or replace) the relocation preview of a record.

        Any previous preview of the same record in the destination slice
        is removed first, so a record never appears there twice.

        Args:
            origin: Record as it stands in the source session
            source_session_id: Session the participant moves out of
            destination_session_id: Session the participant moves into
            destination_group_label: Group label in the destination

        Returns:
            The inserted preview entry
        """
        self.remove_preview(origin.record_key, destination_session_id)
        preview = CacheEntry(
            record_id=origin.record_id,
            row_key=origin.row_key,
            name=origin.name,
            phonetic_name=origin.phonetic_name,
            department=origin.department,
            group_label=destination_group_label,
            session_id=destination_session_id,
            status=ParticipantStatus.RELOCATED,
            is_preview=True,
            source_session_id=source_session_id,
        )
        self._slices.setdefault(destination_session_id, []).append(preview)
        return preview

    def remove_preview(self, record_key: str, session_id: str) -> bool:
        """Remove a record's relocation preview from a destination slice.

        Args:
            record_key: Record ID (or row key for unsaved rows)
            session_id: Destination session ID

        Returns:
            True if a preview was removed
        """
        entries = self._slices.get(session_id)
        if not entries:
            return False
        kept = [
            e
            for e in entries
            if not (e.is_preview and (e.record_id or e.row_key) == record_key)
        ]
        self._slices[session_id] = kept
        return len(kept) != len(entries)

    def slice(self, session_id: str) -> list[CacheEntry]:
        """Entries of one session (empty if unknown)."""
        return list(self._slices.get(session_id, []))

    def replace_slice(self, session_id: str, entries: list[CacheEntry]) -> None:
        self._slices[session_id] = list(entries)

    def session_ids(self) -> list[str]:
        return list(self._slices)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._slices

    def entries(self) -> Iterator[CacheEntry]:
        """Iterate over every entry of every session."""
        for entries in self._slices.values():
            yield from entries

    def copy(self) -> "SessionParticipantCache":
        clone = SessionParticipantCache(self.event_id)
        clone._slices = {sid: list(entries) for sid, entries in self._slices.items()}
        return clone
