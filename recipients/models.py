"""
Purpose: Domain model for care recipients ("users" of the assignment engine).
What it does:
- CareUser: location, required specialties and current assignment reference
- UserAssignmentStatus = UNASSIGNED | ASSIGNED | IN_SERVICE

Rule: Models only. Status changes happen in dispatch.lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

from .conditions import specialties_for_conditions

LatLon = Tuple[float, float]


class UserAssignmentStatus(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    IN_SERVICE = "in_service"


@dataclass(frozen=True)
class CareUser:
    id: str
    location: Optional[LatLon]
    required_specialties: FrozenSet[str] = field(default_factory=frozenset)
    health_conditions: Tuple[str, ...] = ()
    assignment_status: UserAssignmentStatus = UserAssignmentStatus.UNASSIGNED
    assigned_provider_id: Optional[str] = None
    current_assignment_id: Optional[str] = None

    @classmethod
    def new(
        cls,
        user_id: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        health_conditions: Iterable[str] = (),
        specialties: Optional[Iterable[str]] = None,
        assignment_status: str | UserAssignmentStatus = UserAssignmentStatus.UNASSIGNED,
    ) -> CareUser:
        """
        Builds a user; required specialties are derived from the condition
        tags unless given explicitly.
        """
        if isinstance(assignment_status, str):
            assignment_status = UserAssignmentStatus(assignment_status)
        conditions = tuple(health_conditions)
        required = frozenset(specialties) if specialties is not None else specialties_for_conditions(conditions)
        location = (lat, lng) if lat is not None and lng is not None else None

        return cls(
            id=user_id,
            location=location,
            required_specialties=required,
            health_conditions=conditions,
            assignment_status=assignment_status,
        )
