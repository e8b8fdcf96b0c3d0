"""Session metadata model."""

from pydantic import BaseModel, ConfigDict, Field


class SessionInfo(BaseModel):
    """One scheduled session of an event.

    Carries the participant count bookkeeping that is rewritten on save.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    session_id: str = Field(description="Session identifier")
    label: str = Field(default="", description="Display label (date or name)")
    participant_count: int = Field(default=0, ge=0)

    @property
    def display_label(self) -> str:
        return self.label or self.session_id
