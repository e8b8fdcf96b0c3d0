"""Participant record model with an explicit status variant.

A participant's status is never stored independently of its group label:
`derive_status` is the single mapping from label to status, and the
model validator applies it every time a record is built or copied.
"""

from enum import Enum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config import settings
from src.normalize import normalize_group_label, normalize_text

_CANCEL_WORDS = frozenset({"cancel", "cancelled", "canceled"})

# Candidate remote keys for the durable ID, in priority order
_REMOTE_ID_KEYS = (
    "uid",
    "UID",
    "participantUid",
    "participantuid",
    "participant_id",
    "participantId",
    "id",
)


class ParticipantStatus(str, Enum):
    """Registration status of a participant within a session."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    RELOCATED = "relocated"


class Active(BaseModel):
    """Participant attends the session."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["active"] = "active"


class Cancelled(BaseModel):
    """Participant cancelled their registration."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["cancelled"] = "cancelled"


class Relocated(BaseModel):
    """Participant moves to another session of the same event.

    The destination stays empty until the operator picks one.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["relocated"] = "relocated"
    destination_session_id: str = Field(default="", description="Target session")
    destination_group_label: str = Field(
        default="", description="Group label in the target session"
    )


StatusVariant = Annotated[Active | Cancelled | Relocated, Field(discriminator="kind")]


def derive_status(
    group_label: str,
    *,
    cancel_label: str | None = None,
    relocate_label: str | None = None,
) -> ParticipantStatus:
    """Map a group label to the participant status it implies.

    Args:
        group_label: Group label as entered or imported
        cancel_label: Reserved cancel label (defaults to settings)
        relocate_label: Reserved relocate label (defaults to settings)

    Returns:
        CANCELLED for the cancel label (or text containing it, or the
        English "cancel"/"cancelled"), RELOCATED for the relocate label,
        ACTIVE otherwise.
    """
    cancel = cancel_label if cancel_label is not None else settings.cancel_label
    relocate = (
        relocate_label if relocate_label is not None else settings.relocate_label
    )
    label = normalize_group_label(group_label)
    if not label:
        return ParticipantStatus.ACTIVE
    if (cancel and cancel in label) or label.lower() in _CANCEL_WORDS:
        return ParticipantStatus.CANCELLED
    if label == relocate:
        return ParticipantStatus.RELOCATED
    return ParticipantStatus.ACTIVE


def new_row_key(prefix: str = "row") -> str:
    """Generate an in-memory row key that is never reused."""
    return f"{prefix}-{uuid4().hex}"


def _state_for(label: str, previous: Any) -> Active | Cancelled | Relocated:
    """Build the status variant for a label, keeping a previous destination."""
    status = derive_status(label)
    if status is ParticipantStatus.CANCELLED:
        return Cancelled()
    if status is ParticipantStatus.ACTIVE:
        return Active()
    if isinstance(previous, Relocated):
        return previous
    if isinstance(previous, dict) and previous.get("kind") == "relocated":
        return Relocated(
            destination_session_id=normalize_text(
                previous.get("destination_session_id")
            ),
            destination_group_label=normalize_group_label(
                previous.get("destination_group_label")
            ),
        )
    return Relocated()


class ParticipantRecord(BaseModel):
    """One person's registration for one session.

    Records are immutable; every change produces a new record through
    `evolve`, which re-runs validation so the status always matches the
    group label. The row key survives copies, so a row can be followed
    through edits and re-sorting.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    record_id: str = Field(default="", description="Durable participant ID")
    row_key: str = Field(
        default_factory=new_row_key, description="In-memory row identity"
    )
    legacy_record_id: str = Field(
        default="", description="Previous ID when the durable ID changed"
    )
    name: str = Field(default="", description="Full name")
    phonetic_name: str = Field(default="", description="Phonetic reading of the name")
    gender: str = Field(default="")
    department: str = Field(default="", description="Department or faculty")
    group_label: str = Field(default="", description="Team number or reserved label")
    phone: str = Field(default="")
    email: str = Field(default="")
    share_token: str = Field(default="", description="Token for the question form")
    guidance: str = Field(default="", description="Guidance text shown to the person")
    state: StatusVariant = Field(default_factory=Active)

    # Mail delivery bookkeeping
    mail_status: str = Field(default="")
    mail_sent_at: int | None = Field(default=None)
    mail_error: str = Field(default="")
    mail_last_subject: str = Field(default="")
    mail_last_message_id: str = Field(default="")
    mail_sent_by: str = Field(default="")
    mail_last_attempt_at: int | None = Field(default=None)
    mail_last_attempt_by: str = Field(default="")

    @model_validator(mode="before")
    @classmethod
    def _sync_state_with_label(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        label = normalize_group_label(data.get("group_label", ""))
        state = _state_for(label, data.get("state"))
        return {**data, "group_label": label, "state": state}

    @property
    def status(self) -> ParticipantStatus:
        return ParticipantStatus(self.state.kind)

    @property
    def is_cancelled(self) -> bool:
        return self.status is ParticipantStatus.CANCELLED

    @property
    def is_relocated(self) -> bool:
        return self.status is ParticipantStatus.RELOCATED

    @property
    def destination_session_id(self) -> str:
        if isinstance(self.state, Relocated):
            return self.state.destination_session_id
        return ""

    @property
    def destination_group_label(self) -> str:
        if isinstance(self.state, Relocated):
            return self.state.destination_group_label
        return ""

    @property
    def record_key(self) -> str:
        """Side-table key: the record ID, falling back to the row key."""
        return self.record_id or self.row_key

    def evolve(self, **changes: Any) -> "ParticipantRecord":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def with_group_label(self, group_label: str) -> "ParticipantRecord":
        """Copy with a new group label and the status it implies."""
        return self.evolve(group_label=group_label)

    def with_destination(
        self, session_id: str, group_label: str = ""
    ) -> "ParticipantRecord":
        """Copy with a relocation destination (only kept while relocated)."""
        return self.evolve(
            state=Relocated(
                destination_session_id=normalize_text(session_id),
                destination_group_label=normalize_group_label(group_label),
            )
        )

    def without_destination(self) -> "ParticipantRecord":
        """Copy with any relocation destination cleared."""
        if not isinstance(self.state, Relocated):
            return self
        return self.evolve(state=Relocated())

    @classmethod
    def from_remote(cls, fields: dict, fallback_id: str = "") -> "ParticipantRecord":
        """Parse a raw record from the remote participant tree.

        Accepts the historical field aliases (uid/participantId,
        furigana, teamNumber/groupNumber, token).

        Args:
            fields: Raw field mapping for one participant
            fallback_id: Key of the record in the remote tree

        Returns:
            Normalized ParticipantRecord
        """
        fields = fields if isinstance(fields, dict) else {}
        uid = ""
        for key in _REMOTE_ID_KEYS:
            if uid := normalize_text(fields.get(key)):
                break
        uid = uid or normalize_text(fallback_id)
        legacy = normalize_text(fields.get("participantId") or fields.get("id"))
        group = fields.get("teamNumber")
        if group is None:
            group = fields.get("groupNumber", "")
        state: dict[str, str] = {"kind": "relocated"}
        state["destination_session_id"] = normalize_text(
            fields.get("relocationDestinationScheduleId")
        )
        state["destination_group_label"] = normalize_text(
            fields.get("relocationDestinationTeamNumber")
        )
        data: dict[str, Any] = {
            "record_id": uid,
            "legacy_record_id": legacy if legacy and legacy != uid else "",
            "name": normalize_text(fields.get("name") or fields.get("displayName")),
            "phonetic_name": normalize_text(
                fields.get("phonetic") or fields.get("furigana")
            ),
            "gender": normalize_text(fields.get("gender")),
            "department": normalize_text(
                fields.get("department") or fields.get("faculty")
            ),
            "group_label": normalize_text(group),
            "phone": normalize_text(fields.get("phone")),
            "email": normalize_text(fields.get("email")),
            "share_token": normalize_text(fields.get("token")),
            "guidance": normalize_text(fields.get("guidance")),
            "state": state,
            "mail_status": normalize_text(fields.get("mailStatus")),
            "mail_sent_at": _optional_int(fields.get("mailSentAt")),
            "mail_error": normalize_text(fields.get("mailError")),
            "mail_last_subject": normalize_text(fields.get("mailLastSubject")),
            "mail_last_message_id": normalize_text(fields.get("mailLastMessageId")),
            "mail_sent_by": normalize_text(fields.get("mailSentBy")),
            "mail_last_attempt_at": _optional_int(fields.get("mailLastAttemptAt")),
            "mail_last_attempt_by": normalize_text(fields.get("mailLastAttemptBy")),
        }
        if row_key := normalize_text(fields.get("rowKey")):
            data["row_key"] = row_key
        return cls.model_validate(data)

    def to_remote(self) -> dict[str, Any]:
        """Serialize to the remote participant tree format."""
        payload: dict[str, Any] = {
            "uid": self.record_id,
            "participantId": self.record_id,
            "name": self.name,
            "phonetic": self.phonetic_name,
            "furigana": self.phonetic_name,
            "gender": self.gender,
            "department": self.department,
            "groupNumber": self.group_label,
            "teamNumber": self.group_label,
            "phone": self.phone,
            "email": self.email,
            "token": self.share_token,
            "guidance": self.guidance,
            "status": self.status.value,
            "isCancelled": self.is_cancelled,
            "isRelocated": self.is_relocated,
            "relocationDestinationScheduleId": self.destination_session_id,
            "relocationDestinationTeamNumber": self.destination_group_label,
        }
        if self.legacy_record_id:
            payload["legacyParticipantId"] = self.legacy_record_id
        mail_fields = {
            "mailStatus": self.mail_status,
            "mailSentAt": self.mail_sent_at,
            "mailError": self.mail_error,
            "mailLastSubject": self.mail_last_subject,
            "mailLastMessageId": self.mail_last_message_id,
            "mailSentBy": self.mail_sent_by,
            "mailLastAttemptAt": self.mail_last_attempt_at,
            "mailLastAttemptBy": self.mail_last_attempt_by,
        }
        payload.update({k: v for k, v in mail_fields.items() if v not in ("", None)})
        return payload


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None
