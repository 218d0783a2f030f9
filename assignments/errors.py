"""
Purpose: Typed failures of the assignment engine.

Every error carries a stable `code` so the batch orchestrator can record it
in the `failed` list and the HTTP layer can map it to a status code.
None of these should crash a worker; callers catch AssignmentError.
"""

from __future__ import annotations

from typing import Any, Optional


class AssignmentError(Exception):
    """Base class for all recoverable assignment engine errors."""
    code = "AssignmentError"


class NotFoundError(AssignmentError):
    """Unknown user, provider or assignment."""
    code = "NotFound"

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class CapacityExceededError(AssignmentError):
    code = "CapacityExceeded"

    def __init__(self, provider_id: str, max_users: int):
        self.provider_id = provider_id
        self.max_users = max_users
        super().__init__(f"Provider {provider_id} is at capacity ({max_users}/{max_users} users)")


class DuplicateActiveAssignmentError(AssignmentError):
    code = "DuplicateActiveAssignment"

    def __init__(self, user_id: str, assignment_id: Optional[str] = None):
        self.user_id = user_id
        self.assignment_id = assignment_id
        super().__init__(f"User {user_id} already has an active assignment ({assignment_id})")


class InvalidStateError(AssignmentError):
    """Raised when an illegal lifecycle transition is attempted."""
    code = "InvalidState"


class NoEligibleProviderError(AssignmentError):
    code = "NoEligibleProvider"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No eligible provider for user {user_id}")


class InvalidCoordinateError(AssignmentError):
    code = "InvalidCoordinate"

    def __init__(self, coord: Any):
        self.coord = coord
        super().__init__(f"Invalid coordinate {coord!r}: latitude must be in [-90, 90], longitude in [-180, 180]")


class InvalidPreferencesError(AssignmentError, ValueError):
    """Structural problem with a batch request (bad preferences, unknown algorithm)."""
    code = "InvalidPreferences"


class TransactionTimeoutError(AssignmentError):
    """The store could not open a transaction within its lock timeout."""
    code = "TransactionTimeout"
