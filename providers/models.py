"""
Purpose: Core data models for the providers domain.
What it does:
Defines the structure of a care Provider, their status, profession and weekly
work schedule without relying on Django ORM constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

LatLon = Tuple[float, float]

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekday_name(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Profession(str, Enum):
    DOCTOR = "doctor"
    NURSE = "nurse"
    THERAPIST = "therapist"
    CAREGIVER = "caregiver"


@dataclass(frozen=True)
class WorkWindow:
    """
    One weekly working window, e.g. monday 08:00-17:00.
    """
    day: str
    start: time
    end: time

    @classmethod
    def parse(cls, payload: dict) -> WorkWindow:
        """
        Accepts the persisted JSON shape: {"day": "monday", "startTime": "08:00", "endTime": "17:00"}.
        """
        day = str(payload["day"]).lower()
        if day not in WEEKDAYS:
            raise ValueError(f"Unknown weekday {payload['day']!r}")
        start = payload.get("startTime", payload.get("start", "00:00"))
        end = payload.get("endTime", payload.get("end", "23:59"))
        return cls(day=day, start=time.fromisoformat(start), end=time.fromisoformat(end))

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "startTime": self.start.strftime("%H:%M"),
            "endTime": self.end.strftime("%H:%M"),
        }


@dataclass(frozen=True)
class Provider:
    """
    A point-in-time snapshot of a care provider.
    current_users is only ever changed by the lifecycle manager.
    """
    id: str
    location: Optional[LatLon]
    status: ProviderStatus = ProviderStatus.ACTIVE
    profession: Profession = Profession.NURSE
    service_radius_m: float = 5000
    max_users: int = 20
    current_users: int = 0
    specialties: FrozenSet[str] = field(default_factory=frozenset)
    work_schedule: Tuple[WorkWindow, ...] = ()
    rating: float = 5.0

    @property
    def spare_capacity(self) -> int:
        return self.max_users - self.current_users

    @property
    def has_capacity(self) -> bool:
        return self.current_users < self.max_users

    def works_on(self, day: str) -> bool:
        return any(window.day == day for window in self.work_schedule)

    @classmethod
    def new(
        cls,
        provider_id: str,
        lat: Optional[float],
        lng: Optional[float],
        status: str | ProviderStatus = ProviderStatus.ACTIVE,
        profession: str | Profession = Profession.NURSE,
        service_radius_m: float = 5000,
        max_users: int = 20,
        current_users: int = 0,
        specialties: Iterable[str] = (),
        work_schedule: Iterable[WorkWindow | dict] = (),
        rating: float = 5.0,
    ) -> Provider:
        if isinstance(status, str):
            status = ProviderStatus(status)
        if isinstance(profession, str):
            profession = Profession(profession)
        if max_users < 0 or current_users < 0:
            raise ValueError("max_users and current_users must be non-negative")
        if current_users > max_users:
            raise ValueError(f"Provider {provider_id} has current_users {current_users} > max_users {max_users}")

        windows = tuple(
            window if isinstance(window, WorkWindow) else WorkWindow.parse(window)
            for window in work_schedule
        )
        location = (lat, lng) if lat is not None and lng is not None else None

        return cls(
            id=provider_id,
            location=location,
            status=status,
            profession=profession,
            service_radius_m=service_radius_m,
            max_users=max_users,
            current_users=current_users,
            specialties=frozenset(specialties),
            work_schedule=windows,
            rating=rating,
        )
