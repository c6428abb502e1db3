"""
Concurrency tests - racing callers on one record and on id allocation.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from lor_registry.core.store import SQLiteRegistryStore
from lor_registry.core.workflow import WorkflowEngine

from conftest import OWNER

CALLERS = 12


def _race(fn, count=CALLERS):
    """Start count calls of fn(i) together and collect their results."""
    barrier = threading.Barrier(count)

    def call(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(call, range(count)))


class TestConcurrentTransitions:

    def test_single_request_wins(self, engine):
        """N concurrent requests on a fresh record: one success, N-1 INVALID_STATE."""
        student_id = engine.add_student("0xA", "Alice", "a@x.com", "CS").unwrap()

        results = _race(lambda i: engine.request_recommendation(f"0xCaller{i}", student_id))

        assert sum(r.ok for r in results) == 1
        assert sorted(r.error_type for r in results if not r.ok) == ["INVALID_STATE"] * (CALLERS - 1)
        assert engine.get_student(student_id).unwrap().requested is True

    def test_single_approval_wins(self, engine):
        student_id = engine.add_student("0xA", "Alice", "a@x.com", "CS").unwrap()
        engine.request_recommendation("0xA", student_id).unwrap()
        for i in range(CALLERS):
            engine.authorize_approver(OWNER, f"0xApprover{i}").unwrap()

        results = _race(lambda i: engine.approve_recommendation(f"0xApprover{i}", student_id))

        assert sum(r.ok for r in results) == 1
        assert all(r.error_type == "INVALID_STATE" for r in results if not r.ok)

    def test_request_and_approve_race(self, engine):
        """Approval racing a request never lands before it."""
        engine.authorize_approver(OWNER, "0xApprover").unwrap()
        student_id = engine.add_student("0xA", "Alice", "a@x.com", "CS").unwrap()

        def act(i):
            if i % 2:
                return engine.approve_recommendation("0xApprover", student_id)
            return engine.request_recommendation("0xA", student_id)

        _race(act, count=2)

        record = engine.get_student(student_id).unwrap()
        assert record.requested is True
        assert not (record.approved and not record.requested)


class TestConcurrentCreation:

    def test_unique_ids(self, engine):
        """N concurrent creations receive N distinct, contiguous ids."""
        results = _race(lambda i: engine.add_student(f"0xCaller{i}", f"S{i}", f"s{i}@x.com", "CS"))

        ids = [r.unwrap() for r in results]
        assert sorted(ids) == list(range(CALLERS))
        assert engine.student_count().unwrap() == CALLERS

    def test_concurrent_authorization_idempotent(self, engine):
        results = _race(lambda i: engine.authorize_approver(OWNER, "0xApprover"))
        assert all(r.ok for r in results)
        assert engine.store.is_approver("0xApprover")


class TestSharedDatabase:
    """Two stores on one file stand in for two processes; only the conditional write guards them."""

    @pytest.fixture
    def engines(self, tmp_path):
        db_path = str(tmp_path / "shared.db")
        first = WorkflowEngine(SQLiteRegistryStore(db_path=db_path, owner=OWNER), read_retry_delay=0)
        second = WorkflowEngine(SQLiteRegistryStore(db_path=db_path, owner=OWNER), read_retry_delay=0)
        return first, second

    def test_single_request_wins_across_stores(self, engines):
        first, second = engines
        student_id = first.add_student("0xA", "Alice", "a@x.com", "CS").unwrap()

        results = _race(lambda i: (first if i % 2 else second).request_recommendation("0xA", student_id))

        assert sum(r.ok for r in results) == 1
        assert all(r.error_type == "INVALID_STATE" for r in results if not r.ok)

    def test_unique_ids_across_stores(self, engines):
        first, second = engines

        results = _race(lambda i: (first if i % 2 else second).add_student("0xA", f"S{i}", f"s{i}@x.com", "CS"))

        assert sorted(r.unwrap() for r in results) == list(range(CALLERS))


class TestLockMap:

    def test_no_entries_after_race(self, engine):
        student_id = engine.add_student("0xA", "Alice", "a@x.com", "CS").unwrap()

        _race(lambda i: engine.request_recommendation("0xA", student_id if i % 2 else 5000 + i))

        assert engine.store._record_locks == {}
