"""In-memory RemoteStore over nested dictionaries.

Mirrors the shape of the hosted participant tree and is used by the
tests and by local tooling that works on exported snapshots.
"""

import copy
import time
from typing import Any

import structlog

from src.errors import RemoteStoreError
from src.models.session import SessionInfo
from src.store.base import CommitPayload, EventSnapshot, TokenAssignment, WriteResult

logger = structlog.get_logger()


class InMemoryRemoteStore:
    """RemoteStore keeping events, sessions and tokens in dictionaries."""

    def __init__(
        self,
        participants: dict[str, dict[str, dict[str, dict[str, Any]]]] | None = None,
        sessions: dict[str, list[SessionInfo]] | None = None,
        tokens: dict[str, TokenAssignment] | None = None,
    ):
        """Initialize store.

        Args:
            participants: Event ID -> session ID -> record key -> fields
            sessions: Event ID -> sessions of the event
            tokens: Share-token table
        """
        self.participants = copy.deepcopy(participants or {})
        self.sessions: dict[str, dict[str, SessionInfo]] = {
            event_id: {s.session_id: s for s in infos}
            for event_id, infos in (sessions or {}).items()
        }
        self.tokens = dict(tokens or {})
        self.writes: list[CommitPayload] = []

    async def fetch_event(self, event_id: str) -> EventSnapshot:
        if event_id not in self.sessions and event_id not in self.participants:
            raise RemoteStoreError(f"Event not found: {event_id}")
        tree = self.participants.get(event_id, {})
        known = self.sessions.get(event_id, {})
        sessions = list(known.values())
        for session_id, branch in tree.items():
            if session_id not in known:
                sessions.append(
                    SessionInfo(session_id=session_id, participant_count=len(branch))
                )
        return EventSnapshot(
            event_id=event_id,
            sessions=sessions,
            participants=copy.deepcopy(tree),
        )

    async def fetch_tokens(self) -> dict[str, TokenAssignment]:
        return dict(self.tokens)

    async def write(self, payload: CommitPayload) -> WriteResult:
        """Apply a commit payload to the stored tree.

        The session roster is replaced; relocated records are upserted
        into their destination sessions.
        """
        start = time.monotonic()
        event_tree = self.participants.setdefault(payload.event_id, {})
        event_tree[payload.session_id] = copy.deepcopy(payload.roster)
        for session_id, records in payload.destination_records.items():
            event_tree.setdefault(session_id, {}).update(copy.deepcopy(records))

        infos = self.sessions.setdefault(payload.event_id, {})
        for session_id, count in payload.participant_counts.items():
            info = infos.get(session_id) or SessionInfo(session_id=session_id)
            infos[session_id] = info.model_copy(update={"participant_count": count})

        for token in payload.tokens_removed:
            self.tokens.pop(token, None)
        self.tokens.update(payload.tokens_added)
        self.writes.append(payload)

        logger.info(
            "participants written",
            event_id=payload.event_id,
            session_id=payload.session_id,
            records=payload.item_count,
        )
        return WriteResult(
            success=True,
            item_count=payload.item_count,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
