"""Bulk group-assignment reconciliation."""

from src.assignments.reconciler import (
    AssignmentResult,
    apply_assignments,
    apply_assignments_to_cache,
)

__all__ = [
    "AssignmentResult",
    "apply_assignments",
    "apply_assignments_to_cache",
]
