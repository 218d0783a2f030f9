"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Accepts an ordered list of user ids from a batch auto-assign request and, for
each user in turn, filters eligible providers, ranks them with the chosen
algorithm and hands the winner to the lifecycle manager.

Users are processed strictly in the given order with no internal
parallelism: capacity taken by an earlier user must be visible when later
users are scored. One user's failure is recorded and the batch moves on.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from assignments.errors import AssignmentError, CapacityExceededError, InvalidPreferencesError, NoEligibleProviderError, NotFoundError
from assignments.models import Assignment, AssignmentType
from assignments.store import AssignmentStore
from providers.models import Provider

from .candidate_filter import build_base_candidates
from .lifecycle import AssignmentLifecycle
from .policy import AssignmentPolicy, BatchPreferences, default_assignment_policy
from .scoring import Algorithm, rank_candidates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchFailure:
    user_id: str
    error: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"userId": self.user_id, "error": self.error, "reason": self.reason}


@dataclass
class BatchResult:
    """
    Output of a batch auto-assign run.
    """
    assignments: List[Assignment] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignments": [a.to_dict() for a in self.assignments],
            "failed": [f.to_dict() for f in self.failed],
            "statistics": self.statistics,
        }


class BatchAssigner:
    """
    Drives the eligibility filter, the scorer and the lifecycle manager over
    a list of users.
    """

    def __init__(self, store: AssignmentStore, policy: Optional[AssignmentPolicy] = None, lifecycle: Optional[AssignmentLifecycle] = None):
        self.store = store
        self.policy = policy or default_assignment_policy()
        self.lifecycle = lifecycle or AssignmentLifecycle(store)

    def batch_assign(
        self,
        user_ids: Sequence[str],
        algorithm: str | Algorithm = Algorithm.COMPREHENSIVE,
        preferences: Optional[BatchPreferences] = None,
        *,
        actor: str = "system",
        now: Optional[datetime] = None,
    ) -> BatchResult:
        """
        Structural problems (unknown algorithm, bad preferences, oversized or
        malformed user list) raise InvalidPreferencesError before any user is
        touched. Everything after that is captured per user.
        """
        algorithm = Algorithm.parse(algorithm)
        preferences = preferences or BatchPreferences(max_distance_m=self.policy.default_max_distance_m)
        preferences.validate()
        user_ids = self._validate_user_ids(user_ids)
        now = now or datetime.now()

        logger.info("Batch assign started: %d users, algorithm=%s", len(user_ids), algorithm.value)

        # snapshot of the provider pool; a provider is re-read after every
        # attempt that touched it, won or lost
        pool: Dict[str, Provider] = {p.id: p for p in self.store.list_providers()}
        result = BatchResult()

        for user_id in user_ids:
            try:
                assignment = self._assign_one(user_id, algorithm, preferences, pool, actor, now)
            except AssignmentError as exc:
                logger.info("Batch assign: user %s failed (%s): %s", user_id, exc.code, exc)
                result.failed.append(BatchFailure(user_id=user_id, error=exc.code, reason=str(exc)))
                if isinstance(exc, CapacityExceededError):
                    # capacity went elsewhere; drop the stale snapshot so later users skip it
                    self._refresh(pool, exc.provider_id)
                continue

            result.assignments.append(assignment)
            self._refresh(pool, assignment.provider_id)

        result.statistics = summarize(len(user_ids), result)
        logger.info(
            "Batch assign finished: %d assigned, %d failed",
            len(result.assignments), len(result.failed),
        )
        return result

    def _assign_one(
        self,
        user_id: str,
        algorithm: Algorithm,
        preferences: BatchPreferences,
        pool: Dict[str, Provider],
        actor: str,
        now: datetime,
    ) -> Assignment:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        candidates = build_base_candidates(user, pool.values(), preferences.max_distance_m)
        if not candidates:
            raise NoEligibleProviderError(user_id)

        ranked = rank_candidates(user, candidates, algorithm, policy=self.policy, preferences=preferences, now=now)
        best = ranked[0]

        # the create transaction re-checks capacity under lock; a concurrent
        # assignment elsewhere surfaces here as CapacityExceededError
        return self.lifecycle.create_assignment(
            user_id=user_id,
            provider_id=best.provider.id,
            assignment_type=AssignmentType.AUTOMATIC,
            actor=actor,
            reason=best.reason,
            distance_m=round(best.distance_m),
            score=best.score,
        )

    def _refresh(self, pool: Dict[str, Provider], provider_id: str) -> None:
        refreshed = self.store.get_provider(provider_id)
        if refreshed is None:
            pool.pop(provider_id, None)
        else:
            pool[refreshed.id] = refreshed

    def _validate_user_ids(self, user_ids: Sequence[str]) -> List[str]:
        if isinstance(user_ids, (str, bytes)) or not isinstance(user_ids, Sequence):
            raise InvalidPreferencesError("userIds must be a list")
        if len(user_ids) > self.policy.max_batch_size:
            raise InvalidPreferencesError(
                f"Batch of {len(user_ids)} users exceeds the limit of {self.policy.max_batch_size}"
            )
        cleaned = []
        for user_id in user_ids:
            if user_id is None or str(user_id).strip() == "":
                raise InvalidPreferencesError("userIds must not contain empty values")
            cleaned.append(str(user_id))
        return cleaned


def summarize(requested: int, result: BatchResult) -> Dict[str, Any]:
    assigned = len(result.assignments)
    scores = [a.match_score for a in result.assignments if a.match_score is not None]
    distances = [a.distance_m for a in result.assignments if a.distance_m is not None]

    return {
        "requested": requested,
        "assigned": assigned,
        "failed": len(result.failed),
        "automatic_assignment_rate": round(assigned / requested * 100, 1) if requested else 0.0,
        "average_score": round(sum(scores) / len(scores), 2) if scores else None,
        "average_distance_m": round(sum(distances) / len(distances)) if distances else None,
        "failures_by_error": dict(Counter(f.error for f in result.failed)),
        "assignments_by_provider": dict(Counter(a.provider_id for a in result.assignments)),
    }
