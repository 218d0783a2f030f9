"""
Purpose: The transactional store seam the lifecycle manager depends on.
What it does:
- AssignmentStore / StoreTransaction: the read/write surface the engine needs
- InMemoryAssignmentStore: lock-backed implementation for tests, scripts and
  single-process deployments

A transaction is request scoped: the lifecycle manager opens one per
operation and passes it explicitly down its call chain. Reads made through a
transaction are "for update": nothing else can change those rows until the
transaction commits or rolls back.

The Django implementation lives in backend/care/store.py.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol

from providers.models import Provider
from recipients.models import CareUser

from .errors import TransactionTimeoutError
from .models import Assignment, AssignmentHistory, AssignmentStatus

logger = logging.getLogger(__name__)


class StoreTransaction(Protocol):
    def get_user(self, user_id: str) -> Optional[CareUser]: ...

    def get_provider(self, provider_id: str) -> Optional[Provider]: ...

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]: ...

    def active_assignment_for_user(self, user_id: str) -> Optional[Assignment]: ...

    def save_user(self, user: CareUser) -> None: ...

    def save_provider(self, provider: Provider) -> None: ...

    def save_assignment(self, assignment: Assignment) -> None: ...

    def append_history(self, entry: AssignmentHistory) -> None: ...


class AssignmentStore(Protocol):
    def transaction(self) -> ContextManager[StoreTransaction]: ...

    def get_user(self, user_id: str) -> Optional[CareUser]: ...

    def get_provider(self, provider_id: str) -> Optional[Provider]: ...

    def list_providers(self) -> List[Provider]: ...

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]: ...

    def history_for(self, assignment_id: str) -> List[AssignmentHistory]: ...


class _MemoryTransaction:
    """
    Stages writes locally; the store applies them only when the
    transaction block exits cleanly.
    """

    def __init__(self, store: InMemoryAssignmentStore):
        self._store = store
        self.users: Dict[str, CareUser] = {}
        self.providers: Dict[str, Provider] = {}
        self.assignments: Dict[str, Assignment] = {}
        self.history: List[AssignmentHistory] = []

    def get_user(self, user_id: str) -> Optional[CareUser]:
        return self.users.get(user_id) or self._store._users.get(user_id)

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self.providers.get(provider_id) or self._store._providers.get(provider_id)

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        return self.assignments.get(assignment_id) or self._store._assignments.get(assignment_id)

    def active_assignment_for_user(self, user_id: str) -> Optional[Assignment]:
        merged = dict(self._store._assignments)
        merged.update(self.assignments)
        for assignment in merged.values():
            if assignment.user_id == user_id and assignment.status == AssignmentStatus.ACTIVE:
                return assignment
        return None

    def save_user(self, user: CareUser) -> None:
        self.users[user.id] = user

    def save_provider(self, provider: Provider) -> None:
        self.providers[provider.id] = provider

    def save_assignment(self, assignment: Assignment) -> None:
        self.assignments[assignment.id] = assignment

    def append_history(self, entry: AssignmentHistory) -> None:
        self.history.append(entry)


class InMemoryAssignmentStore:
    """
    Single-process store. One re-entrant lock serializes transactions, so a
    capacity check and the matching increment are never interleaved with
    another writer.
    """

    def __init__(self, providers=(), users=(), lock_timeout_seconds: float = 5.0):
        self.lock_timeout_seconds = lock_timeout_seconds
        self._lock = threading.RLock()
        self._providers: Dict[str, Provider] = {p.id: p for p in providers}
        self._users: Dict[str, CareUser] = {u.id: u for u in users}
        self._assignments: Dict[str, Assignment] = {}
        self._history: List[AssignmentHistory] = []

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout_seconds):
            raise TransactionTimeoutError(
                f"Could not acquire store lock within {self.lock_timeout_seconds}s"
            )
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def transaction(self) -> Iterator[_MemoryTransaction]:
        with self._locked():
            txn = _MemoryTransaction(self)
            # an exception inside the block skips the commit below: staged writes are dropped
            yield txn
            self._users.update(txn.users)
            self._providers.update(txn.providers)
            self._assignments.update(txn.assignments)
            self._history.extend(txn.history)

    # --- seeding (scripts / tests) ---

    def add_provider(self, provider: Provider) -> None:
        with self._locked():
            self._providers[provider.id] = provider

    def add_user(self, user: CareUser) -> None:
        with self._locked():
            self._users[user.id] = user

    # --- committed reads ---

    def get_user(self, user_id: str) -> Optional[CareUser]:
        with self._locked():
            return self._users.get(user_id)

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        with self._locked():
            return self._providers.get(provider_id)

    def list_providers(self) -> List[Provider]:
        with self._locked():
            return sorted(self._providers.values(), key=lambda p: p.id)

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        with self._locked():
            return self._assignments.get(assignment_id)

    def list_assignments(
        self,
        *,
        status: Optional[AssignmentStatus] = None,
        user_id: Optional[str] = None,
        provider_id: Optional[str] = None,
    ) -> List[Assignment]:
        with self._locked():
            rows = list(self._assignments.values())
        if status is not None:
            rows = [a for a in rows if a.status == status]
        if user_id is not None:
            rows = [a for a in rows if a.user_id == user_id]
        if provider_id is not None:
            rows = [a for a in rows if a.provider_id == provider_id]
        return sorted(rows, key=lambda a: (a.assigned_at, a.id))

    def history_for(self, assignment_id: str) -> List[AssignmentHistory]:
        with self._locked():
            return [h for h in self._history if h.assignment_id == assignment_id]
