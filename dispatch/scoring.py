"""
Purpose: Ranking/selection model (the "who is best" layer).
Takes candidates (already eligible) + features (distance, load, specialty
overlap, schedule) and produces a 0-100 score per provider.

Algorithms:
- distance_priority: 100 * (1 - distance / max_distance), clamped
- load_balance:      100 * (1 - current_users / max_users)
- specialty_match:   100 * |user ∩ provider| / max(1, |user|)
- comprehensive:     weighted sum of the three above + schedule availability

Tie-breaking is deterministic: equal scores rank by provider id ascending.
Output: ranked providers, best first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from assignments.errors import InvalidPreferencesError
from providers.models import Provider, weekday_name
from recipients.models import CareUser

from .candidate_filter import EligibleCandidate
from .policy import AssignmentPolicy, BatchPreferences, ScoringWeights, default_assignment_policy

# persisted as DECIMAL(5, 2)
SCORE_PRECISION = 2


class Algorithm(str, Enum):
    DISTANCE_PRIORITY = "distance_priority"
    LOAD_BALANCE = "load_balance"
    SPECIALTY_MATCH = "specialty_match"
    COMPREHENSIVE = "comprehensive"

    @classmethod
    def parse(cls, value: str | Algorithm) -> Algorithm:
        try:
            return cls(value)
        except ValueError:
            names = ", ".join(a.value for a in cls)
            raise InvalidPreferencesError(f"Unknown algorithm {value!r}; expected one of: {names}") from None


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Per-factor scores, each already on the 0-100 scale.
    """
    distance: float
    load: float
    specialty: float
    schedule: float


@dataclass(frozen=True)
class ScoredCandidate:
    provider: Provider
    distance_m: float
    score: float
    breakdown: ScoreBreakdown
    reason: str

    @property
    def sort_key(self):
        return (-self.score, self.provider.id)


# -------------------------
# Factor scores
# -------------------------

def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def distance_priority_score(distance_m: float, max_distance_m: float) -> float:
    if max_distance_m <= 0:
        return 0.0
    return _clamp(100.0 * (1.0 - distance_m / max_distance_m))


def load_balance_score(provider: Provider) -> float:
    if provider.max_users <= 0:
        return 0.0
    return _clamp(100.0 * (1.0 - provider.current_users / provider.max_users))


def specialty_match_score(user: CareUser, provider: Provider) -> float:
    matched = user.required_specialties & provider.specialties
    return _clamp(100.0 * len(matched) / max(1, len(user.required_specialties)))


def schedule_availability_score(provider: Provider, now: datetime) -> float:
    return 100.0 if provider.works_on(weekday_name(now)) else 0.0


def comprehensive_score(breakdown: ScoreBreakdown, weights: ScoringWeights) -> float:
    return _clamp(
        weights.distance * breakdown.distance
        + weights.load * breakdown.load
        + weights.specialty * breakdown.specialty
        + weights.schedule * breakdown.schedule
    )


# algorithm -> (breakdown, weights) -> score
STRATEGIES: Dict[Algorithm, Callable[[ScoreBreakdown, ScoringWeights], float]] = {
    Algorithm.DISTANCE_PRIORITY: lambda b, w: b.distance,
    Algorithm.LOAD_BALANCE: lambda b, w: b.load,
    Algorithm.SPECIALTY_MATCH: lambda b, w: b.specialty,
    Algorithm.COMPREHENSIVE: comprehensive_score,
}


def _reason(algorithm: Algorithm, user: CareUser, candidate: EligibleCandidate, breakdown: ScoreBreakdown) -> str:
    provider = candidate.provider
    if algorithm is Algorithm.DISTANCE_PRIORITY:
        return f"closest provider ({candidate.distance_m / 1000:.1f} km)"
    if algorithm is Algorithm.LOAD_BALANCE:
        return f"best load balance ({provider.current_users}/{provider.max_users} users)"
    if algorithm is Algorithm.SPECIALTY_MATCH:
        matched = sorted(user.required_specialties & provider.specialties)
        return f"specialty match ({', '.join(matched)})" if matched else "no specialty overlap"
    return (
        f"comprehensive (distance:{round(breakdown.distance)}, load:{round(breakdown.load)}, "
        f"specialty:{round(breakdown.specialty)}, schedule:{round(breakdown.schedule)})"
    )


def score_candidate(
    user: CareUser,
    candidate: EligibleCandidate,
    algorithm: Algorithm,
    *,
    max_distance_m: float,
    weights: ScoringWeights,
    now: datetime,
) -> ScoredCandidate:
    provider = candidate.provider
    breakdown = ScoreBreakdown(
        distance=distance_priority_score(candidate.distance_m, max_distance_m),
        load=load_balance_score(provider),
        specialty=specialty_match_score(user, provider),
        schedule=schedule_availability_score(provider, now),
    )
    score = round(STRATEGIES[algorithm](breakdown, weights), SCORE_PRECISION)

    return ScoredCandidate(
        provider=provider,
        distance_m=candidate.distance_m,
        score=score,
        breakdown=breakdown,
        reason=_reason(algorithm, user, candidate, breakdown),
    )


def rank_candidates(
    user: CareUser,
    candidates: Sequence[EligibleCandidate],
    algorithm: str | Algorithm = Algorithm.COMPREHENSIVE,
    *,
    policy: Optional[AssignmentPolicy] = None,
    preferences: Optional[BatchPreferences] = None,
    now: Optional[datetime] = None,
) -> List[ScoredCandidate]:
    """
    Score every eligible candidate and return them best first.

    Preferences gate the comprehensive terms (balance_load, consider_specialty,
    consider_schedule); single-factor algorithms ignore the gates.
    """
    algorithm = Algorithm.parse(algorithm)
    policy = policy or default_assignment_policy()
    now = now or datetime.now()

    if preferences is None:
        max_distance_m = policy.default_max_distance_m
        weights = policy.weights
    else:
        max_distance_m = preferences.max_distance_m
        weights = policy.weights.gated(
            balance_load=preferences.balance_load,
            consider_specialty=preferences.consider_specialty,
            consider_schedule=preferences.consider_schedule,
        )

    scored = [
        score_candidate(user, candidate, algorithm, max_distance_m=max_distance_m, weights=weights, now=now)
        for candidate in candidates
    ]
    scored.sort(key=lambda c: c.sort_key)
    return scored
