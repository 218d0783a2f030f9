"""
Django ORM implementation of the assignment store.

transaction() opens transaction.atomic(); every read made through the
transaction uses select_for_update() so the provider row stays locked from
the capacity check until commit. On PostgreSQL a SET LOCAL lock_timeout
bounds the wait, and a lock failure surfaces as TransactionTimeoutError.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import List, Optional

from django.db import IntegrityError, OperationalError, connection, transaction

from assignments.errors import DuplicateActiveAssignmentError, TransactionTimeoutError
from assignments.models import Assignment, AssignmentHistory as HistoryRecord, AssignmentStatus
from providers.models import Provider
from recipients.models import CareUser

from .models import AssignmentHistory, CareRecipient, ServiceProvider, UserAssignment

logger = logging.getLogger(__name__)


class DjangoTransaction:

    def get_user(self, user_id: str) -> Optional[CareUser]:
        row = CareRecipient.objects.select_for_update().filter(pk=user_id).first()
        return row.to_domain() if row else None

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        row = ServiceProvider.objects.select_for_update().filter(pk=provider_id).first()
        return row.to_domain() if row else None

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        row = UserAssignment.objects.select_for_update().filter(pk=assignment_id).first()
        return row.to_domain() if row else None

    def active_assignment_for_user(self, user_id: str) -> Optional[Assignment]:
        row = (
            UserAssignment.objects.select_for_update()
            .filter(user_id=user_id, status=UserAssignment.Status.ACTIVE)
            .first()
        )
        return row.to_domain() if row else None

    def save_user(self, user: CareUser) -> None:
        CareRecipient.objects.filter(pk=user.id).update(
            assignment_status=user.assignment_status.value,
            assigned_provider_id=user.assigned_provider_id,
            current_assignment_id=user.current_assignment_id,
        )

    def save_provider(self, provider: Provider) -> None:
        # the engine only ever moves the load counter
        ServiceProvider.objects.filter(pk=provider.id).update(current_users=provider.current_users)

    def save_assignment(self, assignment: Assignment) -> None:
        defaults = {
            "user_id": assignment.user_id,
            "provider_id": assignment.provider_id,
            "assignment_type": assignment.assignment_type.value,
            "assigned_by": assignment.assigned_by,
            "assignment_reason": assignment.reason,
            "distance_meters": round(assignment.distance_m) if assignment.distance_m is not None else None,
            "match_score": Decimal(str(assignment.match_score)) if assignment.match_score is not None else None,
            "status": assignment.status.value,
            "assigned_at": assignment.assigned_at,
            "cancelled_at": assignment.cancelled_at,
            "completed_at": assignment.completed_at,
        }
        try:
            with transaction.atomic():
                UserAssignment.objects.update_or_create(id=assignment.id, defaults=defaults)
        except IntegrityError as exc:
            # only a second active row for the user is a duplicate; any other
            # constraint failure is a bug and propagates unchanged
            if assignment.status == AssignmentStatus.ACTIVE and (
                UserAssignment.objects.filter(user_id=assignment.user_id, status=UserAssignment.Status.ACTIVE)
                .exclude(pk=assignment.id)
                .exists()
            ):
                raise DuplicateActiveAssignmentError(assignment.user_id) from exc
            raise

    def append_history(self, entry: HistoryRecord) -> None:
        AssignmentHistory.objects.create(
            id=entry.id,
            assignment_id=entry.assignment_id,
            action=entry.action.value,
            reason=entry.reason,
            operator=entry.operator,
            created_at=entry.created_at,
        )


class DjangoAssignmentStore:

    def __init__(self, lock_timeout_seconds: float = 5.0):
        self.lock_timeout_seconds = lock_timeout_seconds

    @contextmanager
    def transaction(self):
        try:
            with transaction.atomic():
                if connection.vendor == "postgresql":
                    with connection.cursor() as cursor:
                        cursor.execute(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_seconds * 1000)}ms'")
                yield DjangoTransaction()
        except OperationalError as exc:
            logger.warning("Assignment transaction failed to lock: %s", exc)
            raise TransactionTimeoutError(str(exc)) from exc

    def get_user(self, user_id: str) -> Optional[CareUser]:
        row = CareRecipient.objects.filter(pk=user_id).first()
        return row.to_domain() if row else None

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        row = ServiceProvider.objects.filter(pk=provider_id).first()
        return row.to_domain() if row else None

    def list_providers(self) -> List[Provider]:
        return [row.to_domain() for row in ServiceProvider.objects.order_by("id")]

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        row = UserAssignment.objects.filter(pk=assignment_id).first()
        return row.to_domain() if row else None

    def history_for(self, assignment_id: str) -> List[HistoryRecord]:
        return [
            row.to_domain()
            for row in AssignmentHistory.objects.filter(assignment_id=assignment_id).order_by("created_at", "id")
        ]
