"""Domain models for roster reconciliation.

This module exports:
- ParticipantRecord: One person's registration for one session
- ParticipantStatus / Active / Cancelled / Relocated: Status variants
- derive_status: Group label -> status mapping
- SessionInfo: Session metadata and participant counts
"""

from src.models.participant import (
    Active,
    Cancelled,
    ParticipantRecord,
    ParticipantStatus,
    Relocated,
    StatusVariant,
    derive_status,
    new_row_key,
)
from src.models.session import SessionInfo

__all__ = [
    # Participant
    "ParticipantRecord",
    "ParticipantStatus",
    "StatusVariant",
    "Active",
    "Cancelled",
    "Relocated",
    "derive_status",
    "new_row_key",
    # Session
    "SessionInfo",
]
