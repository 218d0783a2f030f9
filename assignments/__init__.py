"""
Assignments domain package.

Public API:
- Domain models: Assignment, AssignmentHistory, AssignmentType, AssignmentStatus, HistoryAction
- Errors: AssignmentError and its typed subclasses
- Stores: AssignmentStore protocol, InMemoryAssignmentStore
"""
from .errors import (
    AssignmentError,
    CapacityExceededError,
    DuplicateActiveAssignmentError,
    InvalidCoordinateError,
    InvalidPreferencesError,
    InvalidStateError,
    NoEligibleProviderError,
    NotFoundError,
    TransactionTimeoutError,
)
from .models import Assignment, AssignmentHistory, AssignmentStatus, AssignmentType, HistoryAction
from .store import AssignmentStore, InMemoryAssignmentStore, StoreTransaction

__all__ = [
    "Assignment",
    "AssignmentHistory",
    "AssignmentStatus",
    "AssignmentType",
    "HistoryAction",
    "AssignmentError",
    "CapacityExceededError",
    "DuplicateActiveAssignmentError",
    "InvalidCoordinateError",
    "InvalidPreferencesError",
    "InvalidStateError",
    "NoEligibleProviderError",
    "NotFoundError",
    "TransactionTimeoutError",
    "AssignmentStore",
    "InMemoryAssignmentStore",
    "StoreTransaction",
]
