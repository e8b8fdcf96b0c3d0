"""Identity resolution for participant rows.

This module provides:
- IdentityResolver: Stable, collision-free record IDs for imported rows
- parse_participant_rows / parse_assignment_rows: Keyword-based row import
- ResolutionScope / ResolutionReport: Prefix derivation and per-call report
"""

from src.identity.importer import parse_assignment_rows, parse_participant_rows
from src.identity.resolver import IdentityResolver, identity_key
from src.identity.schemas import DEFAULT_ID_PREFIX, ResolutionReport, ResolutionScope

__all__ = [
    "DEFAULT_ID_PREFIX",
    "IdentityResolver",
    "ResolutionReport",
    "ResolutionScope",
    "identity_key",
    "parse_assignment_rows",
    "parse_participant_rows",
]
