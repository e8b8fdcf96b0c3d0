"""Identity resolution schemas.

Defines the resolution scope and the per-call resolution report.
"""

from pydantic import BaseModel, ConfigDict, Field

from src.normalize import sanitize_prefix_component

DEFAULT_ID_PREFIX = "participant"


class ResolutionScope(BaseModel):
    """Event/session pair that new record IDs are minted under."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    event_id: str = Field(default="", description="Enclosing event ID")
    session_id: str = Field(default="", description="Enclosing session ID")

    @property
    def prefix(self) -> str:
        """Deterministic ID prefix derived from the event and session IDs.

        Examples:
            >>> ResolutionScope(event_id="Spring Fair", session_id="Day 1").prefix
            'spring-fair-day-1'
            >>> ResolutionScope().prefix
            'participant'
        """
        parts = [
            sanitize_prefix_component(self.event_id),
            sanitize_prefix_component(self.session_id),
        ]
        return "-".join(p for p in parts if p) or DEFAULT_ID_PREFIX


class ResolutionReport(BaseModel):
    """Which rows kept, reused or received a record ID in one pass."""

    kept_ids: list[str] = Field(
        default_factory=list, description="IDs already present on input rows"
    )
    reused_ids: list[str] = Field(
        default_factory=list, description="IDs taken over from the existing roster"
    )
    minted_ids: list[str] = Field(
        default_factory=list, description="Newly synthesized IDs"
    )

    @property
    def total(self) -> int:
        return len(self.kept_ids) + len(self.reused_ids) + len(self.minted_ids)
