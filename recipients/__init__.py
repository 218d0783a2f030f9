"""
Care recipients domain package.

Public API:
- Domain models: CareUser, UserAssignmentStatus
- specialties_for_conditions: health condition tags -> required specialties
"""
from .conditions import specialties_for_conditions
from .models import CareUser, UserAssignmentStatus

__all__ = ["CareUser", "UserAssignmentStatus", "specialties_for_conditions"]
