"""Typed event definitions for domain events.

These events represent things that happen to a reconciliation session:
- ParticipantsLoaded: The roster and cross-session cache were (re)loaded
- ParticipantsSaved: A save was committed to the remote store
- RelocationDropped: A pending relocation could not be committed
"""

from pydantic import Field

from src.events.base import Event


class ParticipantsLoaded(Event):
    """Emitted when a session roster is loaded from the remote store."""

    aggregate_type: str = "Session"
    event_id: str = Field(description="Event the session belongs to")
    session_id: str = Field(description="Loaded session")
    participant_count: int = Field(default=0, description="Rows in the live roster")
    duplicate_group_count: int = Field(
        default=0, description="Duplicate groups involving the roster"
    )


class ParticipantsSaved(Event):
    """Emitted after a save was written to the remote store."""

    aggregate_type: str = "Session"
    event_id: str = Field(description="Event the session belongs to")
    session_id: str = Field(description="Saved session")
    participant_count: int = Field(default=0, description="Rows written")
    relocated_count: int = Field(
        default=0, description="Relocations committed to other sessions"
    )
    added_count: int = Field(default=0)
    updated_count: int = Field(default=0)
    removed_count: int = Field(default=0)


class RelocationDropped(Event):
    """Emitted when a relocation's destination no longer exists at commit.

    The record stays relocated with no destination; the operator has to
    choose a destination again.
    """

    aggregate_type: str = "Participant"
    event_id: str = Field(description="Event the session belongs to")
    session_id: str = Field(description="Source session")
    record_key: str = Field(description="Record ID, or row key for unsaved rows")
    destination_session_id: str = Field(description="Missing destination session")
    reason: str = Field(default="destination session not found")
