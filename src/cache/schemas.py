"""Session participant cache schemas."""

from pydantic import BaseModel, ConfigDict, Field

from src.models.participant import ParticipantRecord, ParticipantStatus


class CacheEntry(BaseModel):
    """Lightweight view of one participant in one session.

    Entries flagged `is_current` mirror the live roster of the active
    session; entries flagged `is_preview` are speculative relocation
    targets that exist only until the relocation is committed or reverted.
    """

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(default="", description="Durable participant ID")
    row_key: str = Field(default="", description="Row key of the source record")
    name: str = Field(default="")
    phonetic_name: str = Field(default="")
    department: str = Field(default="")
    group_label: str = Field(default="")
    session_id: str = Field(description="Session the entry belongs to")
    status: ParticipantStatus = Field(default=ParticipantStatus.ACTIVE)
    is_current: bool = Field(
        default=False, description="Mirrors the live roster of the active session"
    )
    is_preview: bool = Field(
        default=False, description="Speculative relocation preview"
    )
    source_session_id: str = Field(
        default="", description="Origin session of a relocation preview"
    )

    @classmethod
    def from_record(
        cls,
        record: ParticipantRecord,
        session_id: str,
        *,
        is_current: bool = False,
    ) -> "CacheEntry":
        """Build an entry from a full participant record."""
        return cls(
            record_id=record.record_id,
            row_key=record.row_key,
            name=record.name,
            phonetic_name=record.phonetic_name,
            department=record.department,
            group_label=record.group_label,
            session_id=session_id,
            status=record.status,
            is_current=is_current,
        )
