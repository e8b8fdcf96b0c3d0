"""Base types for the remote participant store.

This module defines the RemoteStore protocol together with the snapshot
and payload models exchanged with it. The reconciliation core computes
what the persisted state should become; a store only reads and applies.
"""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from src.models.session import SessionInfo


class EventSnapshot(BaseModel):
    """Remote state of one event, as fetched on load."""

    event_id: str = Field(description="Event the snapshot belongs to")
    sessions: list[SessionInfo] = Field(
        default_factory=list, description="Sessions of the event"
    )
    participants: dict[str, dict[str, dict[str, Any]]] = Field(
        default_factory=dict,
        description="Session ID -> record key -> raw record fields",
    )


class TokenAssignment(BaseModel):
    """Share-token table entry pointing at one participant."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    session_id: str
    record_id: str


class CommitPayload(BaseModel):
    """Everything one save writes, applied by the store as a unit."""

    event_id: str
    session_id: str
    roster: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Record ID -> fields for the session"
    )
    destination_records: dict[str, dict[str, dict[str, Any]]] = Field(
        default_factory=dict,
        description="Session ID -> record ID -> fields of relocated records",
    )
    participant_counts: dict[str, int] = Field(
        default_factory=dict, description="Session ID -> participant count"
    )
    tokens_added: dict[str, TokenAssignment] = Field(default_factory=dict)
    tokens_removed: list[str] = Field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.roster) + sum(
            len(records) for records in self.destination_records.values()
        )


class WriteResult(BaseModel):
    """Result of a write to the remote store.

    Captures success/failure status along with metadata about the write.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    success: bool = Field(description="Whether the write succeeded")
    item_count: int = Field(default=0, description="Number of records written")
    error_message: str | None = Field(
        default=None, description="Error message if failed"
    )
    duration_ms: int | None = Field(
        default=None, description="Operation duration in milliseconds"
    )


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for the tree-shaped remote participant store.

    Stores implement this protocol for structural subtyping -
    they don't need to inherit, just implement the methods.
    """

    async def fetch_event(self, event_id: str) -> EventSnapshot:
        """Fetch the sessions and participant tree of an event.

        Args:
            event_id: Event to fetch

        Returns:
            EventSnapshot for the event
        """
        ...

    async def fetch_tokens(self) -> dict[str, TokenAssignment]:
        """Fetch the share-token table.

        Returns:
            Mapping of token to the participant it points at
        """
        ...

    async def write(self, payload: CommitPayload) -> WriteResult:
        """Apply a commit payload.

        Args:
            payload: Everything one save writes

        Returns:
            WriteResult with operation outcome
        """
        ...
