"""
Recommendation workflow - authorization and state machine rules over the registry store.

Per student record:

    added --request_recommendation--> requested --approve_recommendation--> approved (terminal)

Every operation returns an OperationResult instead of raising, so callers
handle the four rejection kinds (validation, not found, unauthorized,
invalid state) as ordinary values.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar

from .errors import (
    InvalidStateError,
    NotFoundError,
    RegistryError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from .schema import AuditEvent, StudentRecord
from .store import IRegistryStore
from ..util.logging import logger

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a workflow operation: a value on success, a RegistryError otherwise."""

    ok: bool
    value: Optional[T] = None
    error: Optional[RegistryError] = None

    @classmethod
    def success(cls, value: T = None) -> 'OperationResult[T]':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: RegistryError) -> 'OperationResult[T]':
        return cls(ok=False, error=error)

    @property
    def error_type(self) -> Optional[str]:
        return self.error.error_type if self.error else None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if not self.ok:
            raise self.error
        return self.value


class WorkflowEngine:
    """Applies the five registry operations on behalf of a caller identity.

    The engine is the only writer to its store. Transitions hold the store's
    per-record lock across the read, the precondition check and the write,
    and the write itself is conditional, so concurrent callers racing on one
    record see exactly one success.
    """

    def __init__(self, store: IRegistryStore, read_retry_attempts: int = 3, read_retry_delay: float = 0.05):
        self.store = store
        self.read_retry_attempts = max(1, read_retry_attempts)
        self.read_retry_delay = read_retry_delay

    # Operations

    def add_student(self, caller: str, name: str, email: str, course: str) -> OperationResult[int]:
        """Create a student record; any known identity may add one."""
        def apply(actor):
            student_id = self.store.create_student(name, email, course)
            logger.log_student_operation(
                "created", student_id, actor,
                fields={"name": name, "email": email, "course": course}
            )
            return student_id, student_id

        return self._mutate("add_student", caller, None, apply)

    def authorize_approver(self, caller: str, target: str) -> OperationResult[None]:
        """Add target to the approver set. Owner only; re-authorizing is a no-op."""
        def apply(actor):
            if not self.store.is_owner(actor):
                raise UnauthorizedError("Only the registry owner may authorize approvers")
            target_identity = self._identity(target, "target")
            added = self.store.add_approver(target_identity)
            logger.log_authorization(actor, target_identity, "success" if added else "unchanged")
            return None, None

        return self._mutate("authorize_approver", caller, None, apply)

    def request_recommendation(self, caller: str, student_id: int) -> OperationResult[None]:
        """Move a record from added to requested. Any known identity may request."""
        def apply(actor):
            with self.store.record_lock(student_id):
                record = self.store.get_student(student_id)
                if record.requested:
                    raise InvalidStateError(f"Recommendation already requested for student {student_id}")
                if not self.store.mark_requested(student_id):
                    raise InvalidStateError(f"Recommendation already requested for student {student_id}")
            logger.log_transition(student_id, "added", "requested", actor)
            return None, student_id

        return self._mutate("request_recommendation", caller, student_id, apply)

    def approve_recommendation(self, caller: str, student_id: int) -> OperationResult[None]:
        """Move a record from requested to approved. Approvers only."""
        def apply(actor):
            if not self.store.is_approver(actor):
                raise UnauthorizedError("Caller is not an authorized approver")
            with self.store.record_lock(student_id):
                record = self.store.get_student(student_id)
                if record.approved:
                    raise InvalidStateError(f"Recommendation already approved for student {student_id}")
                if not record.requested:
                    raise InvalidStateError(f"Recommendation not requested for student {student_id}")
                if not self.store.mark_approved(student_id):
                    raise InvalidStateError(f"Recommendation for student {student_id} changed concurrently")
            logger.log_transition(student_id, "requested", "approved", actor)
            return None, student_id

        return self._mutate("approve_recommendation", caller, student_id, apply)

    def get_student(self, student_id: int) -> OperationResult[StudentRecord]:
        """Read a student record. No authorization required."""
        return self._read(lambda: self.store.get_student(student_id))

    def student_count(self) -> OperationResult[int]:
        """Number of student records ever created (the next id to be allocated)."""
        return self._read(self.store.student_count)

    def recent_events(self, limit: int = 100) -> OperationResult[List[AuditEvent]]:
        """Most recent audit events first."""
        if limit < 1:
            return OperationResult.failure(ValidationError("limit must be >= 1"))
        return self._read(lambda: self.store.list_events(limit))

    # Helpers

    @staticmethod
    def _identity(value: Any, field: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} identity cannot be empty")
        return value.strip()

    def _mutate(self, action: str, caller: str, student_id: Optional[int],
                apply: Callable[[str], Any]) -> OperationResult:
        """Run a mutating operation once and record its outcome.

        Writes are never retried: a transient store failure is reported to the
        caller, who may re-read state with get_student and decide.
        """
        actor = caller.strip() if isinstance(caller, str) else ""
        try:
            actor = self._identity(caller, "caller")
            value, event_student_id = apply(actor)
        except RegistryError as e:
            logger.log_rejection(action, actor or "<anonymous>", e.error_type, e.message, student_id)
            self._audit(actor or "<anonymous>", action, e.error_type, student_id, e.message)
            return OperationResult.failure(e)

        self._audit(actor, action, "success", event_student_id)
        return OperationResult.success(value)

    def _read(self, fn: Callable[[], T]) -> OperationResult[T]:
        """Run a read, retrying transient store failures."""
        last_error = None
        for attempt in range(1, self.read_retry_attempts + 1):
            try:
                return OperationResult.success(fn())
            except StoreUnavailableError as e:
                last_error = e
                logger.warning(f"Store unavailable on read attempt {attempt}/{self.read_retry_attempts}: {e.message}")
                if attempt < self.read_retry_attempts:
                    time.sleep(self.read_retry_delay)
            except RegistryError as e:
                return OperationResult.failure(e)
        return OperationResult.failure(last_error)

    def _audit(self, actor: str, action: str, outcome: str, student_id: Optional[int], detail: str = ""):
        """Append an audit event; the operation outcome stands even if the audit write fails."""
        try:
            self.store.add_event(actor, action, outcome, student_id, detail[:200])
        except StoreUnavailableError as e:
            logger.error(f"Failed to record audit event {action} for {actor}: {e.message}")
