"""
Purpose: Domain models for the Assignments capability.
What it does:
- Assignment (user -> provider binding with a lifecycle status)
- AssignmentHistory (append-only audit row per transition)

Defines enums/constants:
- AssignmentType = MANUAL | AUTOMATIC
- AssignmentStatus = ACTIVE | CANCELLED | COMPLETED
- HistoryAction = CREATED | CANCELLED | COMPLETED | REASSIGNED

Rule: Models only. Transitions live in dispatch/state_machines.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is not AssignmentStatus.ACTIVE


class HistoryAction(str, Enum):
    CREATED = "created"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REASSIGNED = "reassigned"


@dataclass(frozen=True)
class Assignment:
    id: str
    user_id: str
    provider_id: str
    assignment_type: AssignmentType
    assigned_by: str
    reason: str = ""
    distance_m: Optional[float] = None
    match_score: Optional[float] = None
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    assigned_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def new(
        cls,
        user_id: str,
        provider_id: str,
        assignment_type: str | AssignmentType,
        assigned_by: str,
        reason: str = "",
        distance_m: Optional[float] = None,
        match_score: Optional[float] = None,
        assigned_at: Optional[datetime] = None,
    ) -> Assignment:
        if isinstance(assignment_type, str):
            assignment_type = AssignmentType(assignment_type)
        return cls(
            id=f"assign_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            provider_id=provider_id,
            assignment_type=assignment_type,
            assigned_by=assigned_by,
            reason=reason,
            distance_m=distance_m,
            match_score=match_score,
            status=AssignmentStatus.ACTIVE,
            assigned_at=assigned_at or utcnow(),
        )

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["assignment_type"] = self.assignment_type.value
        payload["status"] = self.status.value
        for key in ("assigned_at", "cancelled_at", "completed_at"):
            value = payload[key]
            payload[key] = value.isoformat() if value else None
        return payload


@dataclass(frozen=True)
class AssignmentHistory:
    id: str
    assignment_id: str
    action: HistoryAction
    reason: str
    operator: str
    created_at: datetime

    @classmethod
    def record(cls, assignment_id: str, action: HistoryAction, reason: str, operator: str) -> AssignmentHistory:
        return cls(
            id=f"history_{uuid.uuid4().hex[:12]}",
            assignment_id=assignment_id,
            action=action,
            reason=reason,
            operator=operator,
            created_at=utcnow(),
        )
