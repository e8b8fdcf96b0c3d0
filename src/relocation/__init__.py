"""Relocation of participants between sessions of an event.

This module provides:
- RelocationManager: Pending intents, draft snapshots and cache previews
- build_destination_record: The record a committed relocation writes
"""

from src.relocation.manager import (
    DraftSnapshot,
    RelocationIntent,
    RelocationManager,
    RelocationTarget,
    build_destination_record,
)

__all__ = [
    "DraftSnapshot",
    "RelocationIntent",
    "RelocationManager",
    "RelocationTarget",
    "build_destination_record",
]
