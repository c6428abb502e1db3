"""
Registry store - authoritative storage of student records, the approver set and the audit trail.

Two implementations share one interface:
- SQLiteRegistryStore: durable, survives restarts, safe across processes.
- InMemoryRegistryStore: process-local, for tests and ephemeral runs.

The store does not enforce workflow rules. ``mark_requested`` and
``mark_approved`` are conditional writes that report whether they changed the
record; the workflow engine decides what a failed write means.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Set

from .config import SQLITE_TIMEOUT_SEC
from .db import get_db, init_db, transaction, health_check as db_health_check
from .errors import ConfigurationError, NotFoundError, StoreUnavailableError, ValidationError
from .schema import AuditEvent, StudentRecord

SQLITE_MAX_INTEGER = 2 ** 63 - 1
SQLITE_MIN_INTEGER = -2 ** 63


def _require_text(field: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} cannot be empty")
    return value.strip()


class IRegistryStore(ABC):
    """Abstract interface for registry storage operations."""

    def __init__(self, owner: str):
        self._owner = _require_text("owner", owner)
        self._locks_guard = threading.Lock()
        # student id -> [lock, holders and waiters]; entries live only while in use
        self._record_locks: Dict[int, list] = {}

    @property
    def owner(self) -> str:
        return self._owner

    @contextmanager
    def record_lock(self, student_id: int) -> Iterator[None]:
        """Serialize check-then-act sequences on a single student id."""
        with self._locks_guard:
            entry = self._record_locks.get(student_id)
            if entry is None:
                entry = self._record_locks[student_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._record_locks[student_id]

    def is_owner(self, identity: str) -> bool:
        return identity == self._owner

    @abstractmethod
    def create_student(self, name: str, email: str, course: str) -> int:
        """Allocate the next id and store a new record; returns the id."""
        pass

    @abstractmethod
    def get_student(self, student_id: int) -> StudentRecord:
        """Get a student record, raising NotFoundError if it does not exist."""
        pass

    @abstractmethod
    def mark_requested(self, student_id: int) -> bool:
        """Set requested; returns False if the record was already requested."""
        pass

    @abstractmethod
    def mark_approved(self, student_id: int) -> bool:
        """Set approved; returns False unless the record was requested and not yet approved."""
        pass

    @abstractmethod
    def add_approver(self, identity: str) -> bool:
        """Add an approver; returns False if it was already a member."""
        pass

    @abstractmethod
    def is_approver(self, identity: str) -> bool:
        pass

    @abstractmethod
    def student_count(self) -> int:
        pass

    @abstractmethod
    def add_event(self, actor: str, action: str, outcome: str,
                  student_id: Optional[int] = None, detail: str = "") -> None:
        """Append an audit event."""
        pass

    @abstractmethod
    def list_events(self, limit: int = 100) -> List[AuditEvent]:
        """Most recent audit events first."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        pass


class InMemoryRegistryStore(IRegistryStore):
    """Process-local registry store guarded by a store lock and per-record locks."""

    def __init__(self, owner: str):
        super().__init__(owner)
        self._lock = threading.Lock()
        self._students: Dict[int, StudentRecord] = {}
        self._approvers: Set[str] = set()
        self._events: List[AuditEvent] = []
        self._next_id = 0

    def create_student(self, name: str, email: str, course: str) -> int:
        name = _require_text("name", name)
        email = _require_text("email", email)
        course = _require_text("course", course)

        with self._lock:
            student_id = self._next_id
            self._next_id += 1
            self._students[student_id] = StudentRecord(
                id=student_id, name=name, email=email, course=course
            )
        return student_id

    def get_student(self, student_id: int) -> StudentRecord:
        with self._lock:
            record = self._students.get(student_id)
        if record is None:
            raise NotFoundError(f"Student {student_id} not found")
        return record

    def mark_requested(self, student_id: int) -> bool:
        with self._lock:
            record = self._students.get(student_id)
            if record is None:
                raise NotFoundError(f"Student {student_id} not found")
            if record.requested:
                return False
            self._students[student_id] = StudentRecord(
                id=record.id, name=record.name, email=record.email,
                course=record.course, requested=True, approved=False
            )
            return True

    def mark_approved(self, student_id: int) -> bool:
        with self._lock:
            record = self._students.get(student_id)
            if record is None:
                raise NotFoundError(f"Student {student_id} not found")
            if not record.requested or record.approved:
                return False
            self._students[student_id] = StudentRecord(
                id=record.id, name=record.name, email=record.email,
                course=record.course, requested=True, approved=True
            )
            return True

    def add_approver(self, identity: str) -> bool:
        identity = _require_text("identity", identity)
        with self._lock:
            if identity in self._approvers:
                return False
            self._approvers.add(identity)
            return True

    def is_approver(self, identity: str) -> bool:
        with self._lock:
            return identity in self._approvers

    def student_count(self) -> int:
        with self._lock:
            return self._next_id

    def add_event(self, actor: str, action: str, outcome: str,
                  student_id: Optional[int] = None, detail: str = "") -> None:
        with self._lock:
            self._events.append(AuditEvent(
                id=len(self._events) + 1,
                ts=datetime.now(),
                actor=actor,
                action=action,
                outcome=outcome,
                student_id=student_id,
                detail=detail
            ))

    def list_events(self, limit: int = 100) -> List[AuditEvent]:
        with self._lock:
            return list(reversed(self._events))[:limit]

    def health_check(self) -> bool:
        return True


class SQLiteRegistryStore(IRegistryStore):
    """Durable registry store backed by SQLite.

    Each call opens a short-lived connection. Id allocation and transitions
    run inside ``BEGIN IMMEDIATE`` transactions, so they stay atomic across
    processes sharing the same database file as well as across threads.
    """

    def __init__(self, db_path: str, owner: str, timeout: float = SQLITE_TIMEOUT_SEC):
        super().__init__(owner)
        self.db_path = db_path
        self.timeout = timeout
        try:
            init_db(db_path, timeout)
            self._bind_owner()
        except sqlite3.DatabaseError as e:
            raise StoreUnavailableError(f"Registry database unavailable: {e}") from e

    def _bind_owner(self):
        """Record the owner on first use; refuse to reopen a registry under another owner."""
        with get_db(self.db_path, self.timeout) as conn:
            with transaction(conn) as cursor:
                cursor.execute(
                    "INSERT OR IGNORE INTO registry_meta (key, value) VALUES ('owner', ?)",
                    (self._owner,)
                )
                cursor.execute("SELECT value FROM registry_meta WHERE key = 'owner'")
                stored_owner = cursor.fetchone()[0]
        if stored_owner != self._owner:
            raise ConfigurationError("Registry database belongs to a different owner")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            with get_db(self.db_path, self.timeout) as conn:
                yield conn
        except sqlite3.DatabaseError as e:
            raise StoreUnavailableError(f"Registry database unavailable: {e}") from e

    @staticmethod
    def _row_to_record(row) -> StudentRecord:
        student_id, name, email, course, requested, approved = row
        return StudentRecord(
            id=student_id,
            name=name,
            email=email,
            course=course,
            requested=bool(requested),
            approved=bool(approved)
        )

    def create_student(self, name: str, email: str, course: str) -> int:
        name = _require_text("name", name)
        email = _require_text("email", email)
        course = _require_text("course", course)

        with self._connect() as conn:
            with transaction(conn) as cursor:
                cursor.execute("SELECT value FROM registry_meta WHERE key = 'next_student_id'")
                student_id = int(cursor.fetchone()[0])
                cursor.execute(
                    "INSERT INTO students (id, name, email, course) VALUES (?, ?, ?, ?)",
                    (student_id, name, email, course)
                )
                cursor.execute(
                    "UPDATE registry_meta SET value = ? WHERE key = 'next_student_id'",
                    (str(student_id + 1),)
                )
        return student_id

    @staticmethod
    def _require_storable_id(student_id: int):
        """Ids outside SQLite's signed 64-bit INTEGER range can never have been allocated."""
        if not SQLITE_MIN_INTEGER <= student_id <= SQLITE_MAX_INTEGER:
            raise NotFoundError(f"Student {student_id} not found")

    def get_student(self, student_id: int) -> StudentRecord:
        self._require_storable_id(student_id)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, name, email, course, requested, approved FROM students WHERE id = ?",
                (student_id,)
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Student {student_id} not found")
        return self._row_to_record(row)

    def _conditional_update(self, student_id: int, sql: str) -> bool:
        self._require_storable_id(student_id)
        with self._connect() as conn:
            with transaction(conn) as cursor:
                cursor.execute(sql, (student_id,))
                if cursor.rowcount == 1:
                    return True
                cursor.execute("SELECT 1 FROM students WHERE id = ?", (student_id,))
                if cursor.fetchone() is None:
                    raise NotFoundError(f"Student {student_id} not found")
                return False

    def mark_requested(self, student_id: int) -> bool:
        return self._conditional_update(
            student_id,
            "UPDATE students SET requested = 1 WHERE id = ? AND requested = 0"
        )

    def mark_approved(self, student_id: int) -> bool:
        return self._conditional_update(
            student_id,
            "UPDATE students SET approved = 1 WHERE id = ? AND requested = 1 AND approved = 0"
        )

    def add_approver(self, identity: str) -> bool:
        identity = _require_text("identity", identity)
        with self._connect() as conn:
            with transaction(conn) as cursor:
                cursor.execute("INSERT OR IGNORE INTO approvers (identity) VALUES (?)", (identity,))
                return cursor.rowcount == 1

    def is_approver(self, identity: str) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM approvers WHERE identity = ?", (identity,))
            return cursor.fetchone() is not None

    def student_count(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM registry_meta WHERE key = 'next_student_id'")
            return int(cursor.fetchone()[0])

    def add_event(self, actor: str, action: str, outcome: str,
                  student_id: Optional[int] = None, detail: str = "") -> None:
        with self._connect() as conn:
            with transaction(conn) as cursor:
                cursor.execute(
                    "INSERT INTO events (ts, actor, action, student_id, outcome, detail) VALUES (?, ?, ?, ?, ?, ?)",
                    (datetime.now().isoformat(), actor, action, student_id, outcome, detail)
                )

    def list_events(self, limit: int = 100) -> List[AuditEvent]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, ts, actor, action, outcome, student_id, detail FROM events ORDER BY id DESC LIMIT ?",
                (limit,)
            )
            rows = cursor.fetchall()

        return [
            AuditEvent.from_dict({
                "id": row[0],
                "ts": row[1],
                "actor": row[2],
                "action": row[3],
                "outcome": row[4],
                "student_id": row[5],
                "detail": row[6] or ""
            })
            for row in rows
        ]

    def health_check(self) -> bool:
        return db_health_check(self.db_path, self.timeout)
