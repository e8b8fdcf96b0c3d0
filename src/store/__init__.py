"""Remote participant store collaborators."""

from src.store.base import (
    CommitPayload,
    EventSnapshot,
    RemoteStore,
    TokenAssignment,
    WriteResult,
)
from src.store.memory import InMemoryRemoteStore

__all__ = [
    "CommitPayload",
    "EventSnapshot",
    "InMemoryRemoteStore",
    "RemoteStore",
    "TokenAssignment",
    "WriteResult",
]
