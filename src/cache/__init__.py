"""Cross-session participant cache.

This module provides:
- SessionParticipantCache: Session ID -> cache entries, with relocation previews
- CacheEntry: Lightweight participant view used for duplicate detection
"""

from src.cache.schemas import CacheEntry
from src.cache.session_cache import SessionParticipantCache

__all__ = [
    "CacheEntry",
    "SessionParticipantCache",
]
