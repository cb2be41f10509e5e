"""In-process registry of live proctored sessions.

Sessions are not persisted: a student who closes the page simply never
produces an attempt until the timer runs out. The registry binds each live
session to the student and test it was started for, and converts wall-clock
time into ``Tick`` events so the timer runs out even when the client stops
ticking. ``sweep`` applies elapsed time to every live session, records the
ones that have ended and drops them.

A finished session's result stays pending in the registry until its attempt
has been written. A failed write is retried on the next access or sweep.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from quizly.core.exceptions import NotFoundError
from quizly.services.proctoring import ProctoredSession, SessionResult

logger = logging.getLogger(__name__)

# Persists a finished session and returns the id of the recorded attempt.
Recorder = Callable[[SessionResult], uuid.UUID]


@dataclass
class LiveSession:
    session: ProctoredSession
    student_id: uuid.UUID
    test_id: uuid.UUID
    last_sync: float
    recorder: Optional[Recorder] = None
    attempt_id: Optional[uuid.UUID] = None
    pending: Optional[SessionResult] = None
    record_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_settled(self) -> bool:
        """Finished and nothing left to write."""
        return self.session.is_finished and self.pending is None


class SessionRegistry:
    """Thread-safe map of session id -> live session."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, idle_grace: float = 60.0):
        self._clock = clock
        # a settled session is only swept once its owner has been idle this long
        self._idle_grace = idle_grace
        self._lock = threading.Lock()
        self._sessions: Dict[uuid.UUID, LiveSession] = {}
        self._by_owner: Dict[Tuple[uuid.UUID, uuid.UUID], uuid.UUID] = {}

    def add(
        self,
        session: ProctoredSession,
        student_id: uuid.UUID,
        test_id: uuid.UUID,
        recorder: Optional[Recorder] = None,
    ) -> ProctoredSession:
        self.sweep()
        with self._lock:
            self._sessions[session.id] = LiveSession(
                session=session,
                student_id=student_id,
                test_id=test_id,
                last_sync=self._clock(),
                recorder=recorder,
            )
            self._by_owner[(student_id, test_id)] = session.id
        logger.info("Live session %s opened for test %s", session.id, test_id)
        return session

    def find_active(self, student_id: uuid.UUID, test_id: uuid.UUID) -> Optional[ProctoredSession]:
        """Unfinished session for this student and test, if one is live."""
        with self._lock:
            session_id = self._by_owner.get((student_id, test_id))
            live = self._sessions.get(session_id) if session_id else None
        if live is None:
            return None
        self.sync_clock(live)
        if live.session.is_finished:
            return None
        return live.session

    def get(self, session_id: uuid.UUID, student_id: uuid.UUID) -> ProctoredSession:
        """Fetch a session owned by ``student_id``, applying elapsed time first."""
        with self._lock:
            live = self._sessions.get(session_id)
        if live is None or live.student_id != student_id:
            raise NotFoundError("Test session not found")
        self.sync_clock(live)
        if live.session.is_finished:
            self._flush(live)
        return live.session

    def sync_clock(self, live: LiveSession) -> None:
        now = self._clock()
        with self._lock:
            elapsed = int(now - live.last_sync)
            if elapsed <= 0:
                return
            live.last_sync += elapsed
        live.session.tick(elapsed)

    def record(self, session_id: uuid.UUID, result: SessionResult) -> None:
        """Finish callback: hold ``result`` as pending and try to write it."""
        with self._lock:
            live = self._sessions.get(session_id)
        if live is None:
            logger.error("Session %s finished after leaving the registry; result not recorded", session_id)
            return
        live.pending = result
        self._flush(live)

    def _flush(self, live: LiveSession) -> None:
        with live.record_lock:
            if live.pending is None or live.recorder is None:
                return
            try:
                attempt_id = live.recorder(live.pending)
            except Exception:
                logger.exception("Session %s: attempt could not be recorded, will retry", live.session.id)
                raise
            live.attempt_id = attempt_id
            live.pending = None
        logger.info("Session %s recorded as attempt %s", live.session.id, attempt_id)

    def attempt_id(self, session_id: uuid.UUID) -> Optional[uuid.UUID]:
        with self._lock:
            live = self._sessions.get(session_id)
            return live.attempt_id if live else None

    def discard(self, session_id: uuid.UUID) -> None:
        """Drop a session. One whose result is still unwritten is kept."""
        with self._lock:
            live = self._sessions.get(session_id)
            if live is None:
                return
            if live.pending is not None:
                logger.warning("Session %s has an unrecorded result; keeping it", session_id)
                return
            del self._sessions[session_id]
            key = (live.student_id, live.test_id)
            if self._by_owner.get(key) == session_id:
                del self._by_owner[key]

    def sweep(self) -> int:
        """Time out abandoned sessions, retry pending writes and evict what has settled.

        Returns the number of sessions evicted.
        """
        with self._lock:
            lives: List[LiveSession] = list(self._sessions.values())
        evicted = 0
        for live in lives:
            idle = self._clock() - live.last_sync
            try:
                self.sync_clock(live)
                if live.session.is_finished:
                    self._flush(live)
            except Exception:
                logger.warning("Session %s kept for the next sweep", live.session.id)
                continue
            if live.is_settled and idle >= self._idle_grace:
                self.discard(live.session.id)
                evicted += 1
        if evicted:
            logger.info("Swept %d finished sessions", evicted)
        return evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


registry = SessionRegistry()
