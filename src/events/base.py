"""Base Event class for all domain events."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """Base class for all domain events.

    Events are immutable records of things that happened to a
    reconciliation session; operator-facing tooling subscribes to them.

    Attributes:
        id: Unique identifier for this event instance
        timestamp: When the event occurred
        aggregate_type: Type of the entity (e.g., "Session")
        metadata: Additional context about the event
    """

    model_config = ConfigDict(
        frozen=True,  # Events are immutable
        str_strip_whitespace=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique event instance identifier",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred",
    )
    aggregate_type: str | None = Field(
        default=None,
        description="Type of the related entity",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event context",
    )

    @property
    def event_type(self) -> str:
        """Return the event type name (class name)."""
        return self.__class__.__name__
