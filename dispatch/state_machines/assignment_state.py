from dataclasses import replace
from datetime import datetime
from typing import Optional

from assignments.errors import InvalidStateError
from assignments.models import Assignment, AssignmentStatus, utcnow
from recipients.models import CareUser, UserAssignmentStatus


def transition_assignment_to_cancelled(assignment: Assignment, at: Optional[datetime] = None) -> Assignment:
    """
    active -> cancelled. Cancelled and completed are terminal.
    """
    if assignment.status != AssignmentStatus.ACTIVE:
        raise InvalidStateError(
            f"Cannot cancel assignment {assignment.id}: status is {assignment.status.value}"
        )
    return replace(assignment, status=AssignmentStatus.CANCELLED, cancelled_at=at or utcnow())


def transition_assignment_to_completed(assignment: Assignment, at: Optional[datetime] = None) -> Assignment:
    """
    active -> completed. The service engagement ended normally.
    """
    if assignment.status != AssignmentStatus.ACTIVE:
        raise InvalidStateError(
            f"Cannot complete assignment {assignment.id}: status is {assignment.status.value}"
        )
    return replace(assignment, status=AssignmentStatus.COMPLETED, completed_at=at or utcnow())


def bind_user(user: CareUser, assignment: Assignment) -> CareUser:
    return replace(
        user,
        assignment_status=UserAssignmentStatus.ASSIGNED,
        assigned_provider_id=assignment.provider_id,
        current_assignment_id=assignment.id,
    )


def release_user(user: CareUser) -> CareUser:
    return replace(
        user,
        assignment_status=UserAssignmentStatus.UNASSIGNED,
        assigned_provider_id=None,
        current_assignment_id=None,
    )
