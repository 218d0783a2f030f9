"""
Purpose: Assignment lifecycle manager (the only place capacity is mutated).
What it does:
- create_assignment / cancel_assignment / complete_assignment
- reassign: cancel the user's active assignment, then create a new one
- manual_assign: the admin "assign user to provider" action

Every mutation runs inside exactly one store transaction: the provider row
is locked, capacity is checked and incremented/decremented, the assignment
and user rows change and a history row is appended, all or nothing.
The transaction is passed explicitly to the helpers below; there is no
shared session or capacity state.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from assignments.errors import DuplicateActiveAssignmentError, NotFoundError
from assignments.models import Assignment, AssignmentHistory, AssignmentType, HistoryAction
from assignments.store import AssignmentStore, StoreTransaction
from recipients.models import CareUser
from routing.geo import distance_meters, validate_coordinate

from .state_machines.assignment_state import (
    bind_user,
    release_user,
    transition_assignment_to_cancelled,
    transition_assignment_to_completed,
)
from .state_machines.provider_state import release_slot, reserve_slot

logger = logging.getLogger(__name__)

DEFAULT_MANUAL_REASON = "manual assignment by administrator"


class AssignmentLifecycle:
    """
    Creates, cancels, completes and reassigns Assignment records.
    """

    def __init__(self, store: AssignmentStore):
        self.store = store

    # --- Public API ---

    def create_assignment(
        self,
        user_id: str,
        provider_id: str,
        assignment_type: str | AssignmentType,
        actor: str,
        reason: str = "",
        distance_m: Optional[float] = None,
        score: Optional[float] = None,
    ) -> Assignment:
        with self.store.transaction() as txn:
            assignment = self._create(txn, user_id, provider_id, assignment_type, actor, reason, distance_m, score)

        logger.info(
            "Assignment %s created: user=%s provider=%s type=%s score=%s",
            assignment.id, user_id, provider_id, assignment.assignment_type.value, score,
        )
        return assignment

    def cancel_assignment(self, assignment_id: str, reason: str, actor: str) -> Assignment:
        with self.store.transaction() as txn:
            assignment = self._cancel(txn, assignment_id, reason, actor)

        logger.info("Assignment %s cancelled by %s: %s", assignment_id, actor, reason)
        return assignment

    def complete_assignment(self, assignment_id: str, actor: str, reason: str = "service completed") -> Assignment:
        with self.store.transaction() as txn:
            assignment = self._lock_assignment(txn, assignment_id)
            completed = transition_assignment_to_completed(assignment)
            self._release(txn, completed)
            txn.save_assignment(completed)
            txn.append_history(AssignmentHistory.record(assignment_id, HistoryAction.COMPLETED, reason, actor))

        logger.info("Assignment %s completed by %s", assignment_id, actor)
        return completed

    def reassign(
        self,
        user_id: str,
        provider_id: str,
        actor: str,
        reason: str = "",
        assignment_type: str | AssignmentType = AssignmentType.MANUAL,
        distance_m: Optional[float] = None,
        score: Optional[float] = None,
    ) -> Assignment:
        """
        Cancel-then-create in one transaction. A failed create rolls the
        cancellation back, so the user never ends up with no provider by accident.
        """
        with self.store.transaction() as txn:
            self._lock_user(txn, user_id)
            previous = txn.active_assignment_for_user(user_id)
            if previous is not None:
                self._cancel(txn, previous.id, reason or "reassigned", actor)

            if distance_m is None:
                distance_m = self._distance_between(txn, user_id, provider_id)

            assignment = self._create(txn, user_id, provider_id, assignment_type, actor, reason, distance_m, score)
            if previous is not None:
                txn.append_history(
                    AssignmentHistory.record(
                        assignment.id,
                        HistoryAction.REASSIGNED,
                        f"reassigned from {previous.id} (provider {previous.provider_id})",
                        actor,
                    )
                )

        logger.info(
            "User %s reassigned to provider %s (previous assignment %s)",
            user_id, provider_id, previous.id if previous else None,
        )
        return assignment

    def manual_assign(self, user_id: str, provider_id: str, notes: Optional[str], actor: str) -> Assignment:
        """
        Admin action: bind a user to a specific provider. Distance is recorded
        when both sides have coordinates; manual assignments carry no score.
        """
        with self.store.transaction() as txn:
            distance_m = self._distance_between(txn, user_id, provider_id)
            assignment = self._create(
                txn, user_id, provider_id, AssignmentType.MANUAL, actor,
                notes or DEFAULT_MANUAL_REASON, distance_m, None,
            )

        logger.info("Manual assignment %s: user=%s provider=%s by %s", assignment.id, user_id, provider_id, actor)
        return assignment

    def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self.store.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def history_for(self, assignment_id: str) -> List[AssignmentHistory]:
        self.get_assignment(assignment_id)
        return self.store.history_for(assignment_id)

    # --- Transaction-scoped helpers ---

    def _create(
        self,
        txn: StoreTransaction,
        user_id: str,
        provider_id: str,
        assignment_type: str | AssignmentType,
        actor: str,
        reason: str,
        distance_m: Optional[float],
        score: Optional[float],
    ) -> Assignment:
        user = self._lock_user(txn, user_id)
        provider = txn.get_provider(provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)

        existing = txn.active_assignment_for_user(user_id)
        if existing is not None:
            raise DuplicateActiveAssignmentError(user_id, existing.id)

        reserved = reserve_slot(provider)
        assignment = Assignment.new(
            user_id=user_id,
            provider_id=provider_id,
            assignment_type=assignment_type,
            assigned_by=actor,
            reason=reason,
            distance_m=distance_m,
            match_score=score,
        )

        txn.save_provider(reserved)
        txn.save_assignment(assignment)
        txn.save_user(bind_user(user, assignment))
        txn.append_history(AssignmentHistory.record(assignment.id, HistoryAction.CREATED, reason, actor))
        return assignment

    def _cancel(self, txn: StoreTransaction, assignment_id: str, reason: str, actor: str) -> Assignment:
        assignment = self._lock_assignment(txn, assignment_id)
        cancelled = transition_assignment_to_cancelled(assignment)
        self._release(txn, cancelled)
        txn.save_assignment(cancelled)
        txn.append_history(AssignmentHistory.record(assignment_id, HistoryAction.CANCELLED, reason, actor))
        return cancelled

    def _release(self, txn: StoreTransaction, assignment: Assignment) -> None:
        """
        Give back the provider slot and unbind the user, if the user still
        points at this assignment.
        """
        provider = txn.get_provider(assignment.provider_id)
        if provider is None:
            raise NotFoundError("Provider", assignment.provider_id)
        txn.save_provider(release_slot(provider))

        user = txn.get_user(assignment.user_id)
        if user is not None and user.current_assignment_id in (None, assignment.id):
            txn.save_user(release_user(user))

    def _lock_user(self, txn: StoreTransaction, user_id: str) -> CareUser:
        user = txn.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _lock_assignment(self, txn: StoreTransaction, assignment_id: str) -> Assignment:
        """
        Locks the owning user row before the assignment row: user first,
        the same order _create takes.
        """
        committed = self.store.get_assignment(assignment_id)
        if committed is None:
            raise NotFoundError("Assignment", assignment_id)
        self._lock_user(txn, committed.user_id)

        assignment = txn.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def _distance_between(self, txn: StoreTransaction, user_id: str, provider_id: str) -> Optional[float]:
        user = self._lock_user(txn, user_id)
        provider = txn.get_provider(provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        if user.location is None or provider.location is None:
            return None
        return round(distance_meters(validate_coordinate(user.location), validate_coordinate(provider.location)))
