"""Duplicate participant detection.

This module provides:
- DuplicateDetector: Exact (name, department) collisions across sessions
- describe_match / summarize: Operator-facing rendering of the results
"""

from src.duplicates.detector import (
    DuplicateDetector,
    DuplicateGroup,
    DuplicateMatch,
    DuplicateReport,
    MatchedRecord,
    NearMissHint,
    describe_match,
    duplicate_key,
    summarize,
)

__all__ = [
    "DuplicateDetector",
    "DuplicateGroup",
    "DuplicateMatch",
    "DuplicateReport",
    "MatchedRecord",
    "NearMissHint",
    "describe_match",
    "duplicate_key",
    "summarize",
]
