"""
Purpose: Central configuration for provider scoring and batch assignment.
What it does:

Stores all tunable weights/defaults in one place:

DISTANCE_WEIGHT = 0.4
LOAD_WEIGHT = 0.3
SPECIALTY_WEIGHT = 0.2
SCHEDULE_WEIGHT = 0.1
DEFAULT_MAX_DISTANCE_M = 5000

plus the per-request BatchPreferences an operator submits with a batch.

Rule: No logic here beyond validation, just parameters so you can tune
without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from assignments.errors import InvalidPreferencesError


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weights of the comprehensive score. They must sum to 1 so the
    weighted score stays within [0, 100].
    """
    distance: float = 0.4
    load: float = 0.3
    specialty: float = 0.2
    schedule: float = 0.1

    @property
    def total(self) -> float:
        return self.distance + self.load + self.specialty + self.schedule

    def gated(self, *, balance_load: bool = True, consider_specialty: bool = True, consider_schedule: bool = True) -> ScoringWeights:
        """
        Zero out the disabled terms, then re-normalize the rest to sum to 1.
        """
        weights = ScoringWeights(
            distance=self.distance,
            load=self.load if balance_load else 0.0,
            specialty=self.specialty if consider_specialty else 0.0,
            schedule=self.schedule if consider_schedule else 0.0,
        )
        total = weights.total
        if total <= 0:
            return ScoringWeights(distance=0.0, load=0.0, specialty=0.0, schedule=0.0)
        return ScoringWeights(
            distance=weights.distance / total,
            load=weights.load / total,
            specialty=weights.specialty / total,
            schedule=weights.schedule / total,
        )

    def validate(self) -> None:
        for name in ("distance", "load", "specialty", "schedule"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} weight must be >= 0")
        if abs(self.total - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0 (got {self.total})")


@dataclass(frozen=True)
class AssignmentPolicy:
    """
    Engine-wide configuration handed to the scorer, the lifecycle manager
    and the batch orchestrator.
    """

    # --- Scoring ---
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    # --- Geography ---
    # Used when a batch does not specify maxDistance. The effective radius is
    # always min(provider.service_radius_m, max distance).
    default_max_distance_m: float = 5000

    # --- Transactions ---
    # How long a store may wait for its lock before failing with
    # TransactionTimeoutError instead of blocking.
    lock_timeout_seconds: float = 5.0

    # --- Batch guard ---
    # Callers are expected to bound batch size; requests above this are rejected.
    max_batch_size: int = 500

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        self.weights.validate()

        if self.default_max_distance_m <= 0:
            raise ValueError("default_max_distance_m must be > 0")

        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be > 0")

        if self.max_batch_size <= 0:
            raise ValueError("max_batch_size must be > 0")


def default_assignment_policy() -> AssignmentPolicy:
    """
    Convenience factory for the default policy.
    """
    p = AssignmentPolicy()
    p.validate()
    return p


def policy_from_env() -> AssignmentPolicy:
    """
    Build a policy from CARE_* environment variables (a .env file is honoured).

    Example in .env:
    CARE_DEFAULT_MAX_DISTANCE_M=8000
    CARE_WEIGHT_DISTANCE=0.5
    """
    load_dotenv()
    defaults = ScoringWeights()
    weights = ScoringWeights(
        distance=float(os.getenv("CARE_WEIGHT_DISTANCE", defaults.distance)),
        load=float(os.getenv("CARE_WEIGHT_LOAD", defaults.load)),
        specialty=float(os.getenv("CARE_WEIGHT_SPECIALTY", defaults.specialty)),
        schedule=float(os.getenv("CARE_WEIGHT_SCHEDULE", defaults.schedule)),
    )
    p = AssignmentPolicy(
        weights=weights,
        default_max_distance_m=float(os.getenv("CARE_DEFAULT_MAX_DISTANCE_M", 5000)),
        lock_timeout_seconds=float(os.getenv("CARE_LOCK_TIMEOUT_SECONDS", 5.0)),
        max_batch_size=int(os.getenv("CARE_MAX_BATCH_SIZE", 500)),
    )
    p.validate()
    return p


@dataclass(frozen=True)
class BatchPreferences:
    """
    Per-request options of a batch auto-assign.
    The three booleans gate the matching terms of the comprehensive score.
    """
    max_distance_m: float = 5000
    consider_specialty: bool = True
    consider_schedule: bool = True
    balance_load: bool = True

    def validate(self) -> None:
        if isinstance(self.max_distance_m, bool) or not isinstance(self.max_distance_m, (int, float)):
            raise InvalidPreferencesError(f"maxDistance must be a number, got {self.max_distance_m!r}")
        if self.max_distance_m <= 0:
            raise InvalidPreferencesError("maxDistance must be > 0")
        for name in ("consider_specialty", "consider_schedule", "balance_load"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidPreferencesError(f"{name} must be a boolean")

    @classmethod
    def from_payload(
        cls,
        payload: Optional[Mapping[str, Any]],
        policy: Optional[AssignmentPolicy] = None,
    ) -> BatchPreferences:
        """
        Accepts the admin API shape:
        {"maxDistance": 5000, "considerSpecialty": true, "considerSchedule": true, "balanceLoad": true}
        """
        policy = policy or default_assignment_policy()
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise InvalidPreferencesError("preferences must be an object")

        known = {"maxDistance", "considerSpecialty", "considerSchedule", "balanceLoad"}
        unknown = set(payload) - known
        if unknown:
            raise InvalidPreferencesError(f"Unknown preference keys: {sorted(unknown)}")

        max_distance = payload.get("maxDistance")
        prefs = cls(
            max_distance_m=policy.default_max_distance_m if max_distance is None else max_distance,
            consider_specialty=payload.get("considerSpecialty", True),
            consider_schedule=payload.get("considerSchedule", True),
            balance_load=payload.get("balanceLoad", True),
        )
        prefs.validate()
        return prefs
