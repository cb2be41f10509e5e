import functools
import uuid

import pytest

from quizly.core.exceptions import NotFoundError
from quizly.schemas.mcq import MCQ
from quizly.services.proctoring import ProctoredSession


class FlakyStore:
    """Stands in for the attempts table; fails the first ``failures`` writes."""

    def __init__(self, failures=0):
        self.failures = failures
        self.rows = []

    def __call__(self, result):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("write failed")
        self.rows.append(result)
        return uuid.uuid4()


def start(registry, store, student_id=None, test_id=None, minutes=1):
    session_id = uuid.uuid4()
    session = ProctoredSession(
        [MCQ(question_text="Q", options=["A", "B", "C", "D"], correct_option="A")],
        duration_minutes=minutes,
        on_finish=functools.partial(registry.record, session_id),
        session_id=session_id,
    )
    return registry.add(session, student_id or uuid.uuid4(), test_id or uuid.uuid4(), recorder=store)


def test_get_is_owner_only(registry):
    session = start(registry, FlakyStore())
    with pytest.raises(NotFoundError):
        registry.get(session.id, uuid.uuid4())


def test_result_is_held_until_written(registry):
    store = FlakyStore(failures=2)
    student_id = uuid.uuid4()
    session = start(registry, store, student_id)
    session.enter_secure_mode()

    with pytest.raises(RuntimeError):
        session.submit()
    with pytest.raises(RuntimeError):
        registry.get(session.id, student_id)
    assert registry.attempt_id(session.id) is None

    registry.get(session.id, student_id)

    assert len(store.rows) == 1
    assert registry.attempt_id(session.id) is not None
    # written once, so further reads do not write again
    registry.get(session.id, student_id)
    assert len(store.rows) == 1


def test_sweep_keeps_running_sessions(registry, clock):
    store = FlakyStore()
    running = start(registry, store, minutes=30)
    start(registry, store, minutes=1)

    clock.advance(120)

    assert registry.sweep() == 1
    assert len(registry) == 1
    assert not running.is_finished
    assert running.remaining_seconds == 30 * 60 - 120


def test_sweep_retries_failed_writes(registry, clock):
    store = FlakyStore(failures=1)
    start(registry, store)

    clock.advance(3600)
    assert registry.sweep() == 0
    assert len(registry) == 1

    clock.advance(60)
    assert registry.sweep() == 1
    assert len(store.rows) == 1


def test_find_active_applies_elapsed_time(registry, clock):
    student_id, test_id = uuid.uuid4(), uuid.uuid4()
    session = start(registry, FlakyStore(), student_id, test_id)
    assert registry.find_active(student_id, test_id) is session

    clock.advance(60)

    assert registry.find_active(student_id, test_id) is None
    assert session.is_finished
