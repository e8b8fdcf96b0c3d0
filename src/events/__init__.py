"""Event infrastructure for the roster reconciler.

Provides:
- Event: Base class for all domain events
- EventBus: In-process pub/sub for operator notifications
"""

from src.events.base import Event
from src.events.bus import EventBus
from src.events.types import ParticipantsLoaded, ParticipantsSaved, RelocationDropped

__all__ = [
    # Base
    "Event",
    # Infrastructure
    "EventBus",
    # Event types
    "ParticipantsLoaded",
    "ParticipantsSaved",
    "RelocationDropped",
]
