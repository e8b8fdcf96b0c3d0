"""Reconciliation session context.

This module provides:
- ReconciliationSession: Live roster, cache, baseline and relocations for one session
- CommitPlan / build_commit_plan: Pure computation of what a save writes
- sort_roster: Display ordering of the roster
"""

from src.session.commit import CommitPlan, build_commit_plan, generate_token
from src.session.context import (
    AssignmentOutcome,
    ImportOutcome,
    ReconciliationSession,
    SaveOutcome,
)
from src.session.ordering import sort_roster

__all__ = [
    "AssignmentOutcome",
    "CommitPlan",
    "ImportOutcome",
    "ReconciliationSession",
    "SaveOutcome",
    "build_commit_plan",
    "generate_token",
    "sort_roster",
]
