"""Pure computation of what a save writes.

`build_commit_plan` never touches session state: it derives the remote
payload and the post-commit in-memory state from its arguments. The
session awaits the store write and applies the plan only on success,
so a failed save leaves everything as it was.
"""

import secrets
import string
from collections.abc import Callable, Mapping, Sequence

import structlog
from pydantic import BaseModel, Field

from src.cache.session_cache import SessionParticipantCache
from src.identity.resolver import IdentityResolver
from src.identity.schemas import ResolutionScope
from src.models.participant import ParticipantRecord
from src.models.session import SessionInfo
from src.relocation.manager import RelocationIntent, build_destination_record
from src.store.base import CommitPayload, TokenAssignment

logger = structlog.get_logger()

TOKEN_ALPHABET = string.ascii_letters + string.digits
MIN_TOKEN_LENGTH = 12

TokenFactory = Callable[[set[str]], str]


def generate_token(taken: set[str], length: int = 32) -> str:
    """Random share token not contained in `taken`.

    Args:
        taken: Tokens already in use
        length: Token length (at least MIN_TOKEN_LENGTH)

    Returns:
        New unique token
    """
    length = max(length, MIN_TOKEN_LENGTH)
    while True:
        token = "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
        if token not in taken:
            return token


class CommitPlan(BaseModel):
    """Remote payload plus the in-memory state to adopt once it is written."""

    payload: CommitPayload
    roster: list[ParticipantRecord] = Field(
        default_factory=list, description="Committed roster of the session"
    )
    destination_records: dict[str, list[ParticipantRecord]] = Field(
        default_factory=dict, description="Session ID -> materialized relocations"
    )
    committed: list[RelocationIntent] = Field(default_factory=list)
    dropped: list[RelocationIntent] = Field(
        default_factory=list, description="Intents whose destination is gone"
    )
    participant_counts: dict[str, int] = Field(default_factory=dict)
    tokens: dict[str, TokenAssignment] = Field(
        default_factory=dict, description="Token table after the commit"
    )


def build_commit_plan(
    *,
    event_id: str,
    session_id: str,
    roster: Sequence[ParticipantRecord],
    pending: Mapping[str, RelocationIntent],
    sessions: Mapping[str, SessionInfo],
    cache: SessionParticipantCache,
    tokens: Mapping[str, TokenAssignment],
    resolver: IdentityResolver,
    token_factory: TokenFactory,
) -> CommitPlan:
    """Compute everything a save writes and the state it leaves behind.

    Args:
        event_id: Active event
        session_id: Active session
        roster: Live roster to commit
        pending: Pending relocation intents by record key
        sessions: Known sessions of the event
        cache: Cross-session cache (read only)
        tokens: Current share-token table
        resolver: Identity resolver for rows still lacking an ID
        token_factory: Generates a token not contained in the given set

    Returns:
        CommitPlan
    """
    keys_before = [record.record_key for record in roster]
    resolved = resolver.resolve_identities(
        roster,
        [record for record in roster if record.record_id],
        ResolutionScope(event_id=event_id, session_id=session_id),
    )
    index_by_key = {key: index for index, key in enumerate(keys_before)}

    taken = set(tokens)
    issued: dict[str, TokenAssignment] = {}
    table = dict(tokens)

    def assign_token(record: ParticipantRecord, target_session: str) -> str:
        assignment = TokenAssignment(
            event_id=event_id, session_id=target_session, record_id=record.record_id
        )
        token = record.share_token
        owner = table.get(token)
        if not token or token in issued or (owner is not None and owner != assignment):
            token = token_factory(taken)
        taken.add(token)
        issued[token] = assignment
        table[token] = assignment
        return token

    committed_roster: list[ParticipantRecord] = []
    for record in resolved:
        token = assign_token(record, session_id)
        committed_roster.append(
            record if token == record.share_token else record.evolve(share_token=token)
        )

    committed: list[RelocationIntent] = []
    dropped: list[RelocationIntent] = []
    destinations: dict[str, list[ParticipantRecord]] = {}
    for key, intent in pending.items():
        index = index_by_key.get(key)
        origin = committed_roster[index] if index is not None else None
        if origin is None or not origin.is_relocated:
            continue
        if intent.destination_session_id not in sessions:
            dropped.append(intent)
            committed_roster[index] = origin.without_destination()
            logger.warning(
                "relocation dropped",
                record_key=key,
                destination_session_id=intent.destination_session_id,
            )
            continue
        # The origin's token stays with the origin; the copy gets its own
        moved = build_destination_record(intent, origin)
        moved = moved.evolve(
            share_token=assign_token(moved, intent.destination_session_id)
        )
        destinations.setdefault(intent.destination_session_id, []).append(moved)
        committed.append(intent)

    # Tokens of this session's records that are no longer issued go away
    removed_tokens = [
        token
        for token, owner in tokens.items()
        if owner.event_id == event_id
        and owner.session_id == session_id
        and issued.get(token) != owner
    ]
    for token in removed_tokens:
        table.pop(token, None)

    counts = {session_id: len(committed_roster)}
    for destination, records in destinations.items():
        existing = {
            entry.record_id
            for entry in cache.slice(destination)
            if not entry.is_preview and entry.record_id
        }
        counts[destination] = len(existing | {r.record_id for r in records})

    payload = CommitPayload(
        event_id=event_id,
        session_id=session_id,
        roster={r.record_id: r.to_remote() for r in committed_roster},
        destination_records={
            destination: {r.record_id: r.to_remote() for r in records}
            for destination, records in destinations.items()
        },
        participant_counts=counts,
        tokens_added={
            token: owner
            for token, owner in issued.items()
            if tokens.get(token) != owner
        },
        tokens_removed=removed_tokens,
    )
    return CommitPlan(
        payload=payload,
        roster=committed_roster,
        destination_records=destinations,
        committed=committed,
        dropped=dropped,
        participant_counts=counts,
        tokens=table,
    )
