"""Proctored test-taking session engine.

A ``ProctoredSession`` runs one student's timed attempt at one test. It is a
small state machine::

    AWAITING_SECURE_MODE -> IN_PROGRESS -> SUBMITTED
                                        -> DISQUALIFIED

All inputs (student actions, fullscreen / visibility loss reported by the
client adapter, timer ticks) are events applied through ``dispatch``, which
holds the session lock while it mutates state. The finish callback is called
after the lock is released, exactly once per session.

The engine knows nothing about the browser: "fullscreen exited" and "tab
hidden" both arrive as a single ``FocusLost`` event. Only the first
``FocusLost`` of an episode counts; the episode ends when secure mode is
entered again.
"""
from __future__ import annotations

import logging
import random
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from quizly.core.config import settings
from quizly.core.exceptions import InvalidOperationError, ValidationError
from quizly.schemas.mcq import MCQ

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    AWAITING_SECURE_MODE = "awaiting_secure_mode"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    DISQUALIFIED = "disqualified"


TERMINAL_STATES = (SessionState.SUBMITTED, SessionState.DISQUALIFIED)


class FinishReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"
    VIOLATIONS = "violations"


# --- Events ---------------------------------------------------------------

@dataclass(frozen=True)
class EnterSecureMode:
    """Result of the client's attempt to acquire fullscreen."""

    granted: bool = True


@dataclass(frozen=True)
class FocusLost:
    """Fullscreen exited or the page lost visibility/focus."""

    source: str = "fullscreen"


@dataclass(frozen=True)
class SelectAnswer:
    question_index: int
    option: Optional[str]


@dataclass(frozen=True)
class Navigate:
    direction: int  # +1 next, -1 previous


@dataclass(frozen=True)
class JumpTo:
    question_index: int


@dataclass(frozen=True)
class ToggleReview:
    question_index: int


@dataclass(frozen=True)
class Tick:
    seconds: int = 1


@dataclass(frozen=True)
class Submit:
    reason: FinishReason = FinishReason.MANUAL


# --- Results --------------------------------------------------------------

@dataclass(frozen=True)
class SessionResult:
    """Outcome handed to the finish callback."""

    answers: List[Optional[str]]  # in test order
    violation_count: int
    violation_limit: int
    score: int
    total_questions: int
    reason: FinishReason

    @property
    def disqualified(self) -> bool:
        return self.violation_count >= self.violation_limit


def score_answers(questions: Sequence[MCQ], answers: Sequence[Optional[str]]) -> int:
    """Count positions whose answer equals the correct option; ``None`` never matches."""
    return sum(
        1 for question, answer in zip(questions, answers)
        if question.is_correct(answer)
    )


@dataclass
class _QuestionSlot:
    question: MCQ
    original_index: int
    options: List[str] = field(default_factory=list)


class ProctoredSession:
    """State machine for one student's attempt at one test."""

    def __init__(
        self,
        questions: Sequence[MCQ],
        duration_minutes: int,
        on_finish: Optional[Callable[[SessionResult], None]] = None,
        violation_limit: Optional[int] = None,
        shuffle_questions: bool = False,
        shuffle_options: bool = False,
        seed: Optional[int] = None,
        session_id: Optional[uuid.UUID] = None,
    ):
        if not questions:
            raise ValidationError("A test needs at least one question")
        if duration_minutes <= 0:
            raise ValidationError("Duration must be greater than zero")

        self.id = session_id or uuid.uuid4()
        self.questions = list(questions)
        self.violation_limit = violation_limit or settings.VIOLATION_LIMIT
        self._on_finish = on_finish
        self._lock = threading.Lock()

        rng = random.Random(seed)
        slots = [
            _QuestionSlot(question=q, original_index=i, options=list(q.options))
            for i, q in enumerate(self.questions)
        ]
        if shuffle_questions:
            rng.shuffle(slots)
        if shuffle_options:
            for slot in slots:
                rng.shuffle(slot.options)
        self._slots = slots

        self._state = SessionState.AWAITING_SECURE_MODE
        self._secure_mode = False
        self._answers: List[Optional[str]] = [None] * len(self.questions)
        self._marked: set = set()
        self._current = 0
        self._violations = 0
        self._remaining = duration_minutes * 60
        self._result: Optional[SessionResult] = None
        self._last_message: Optional[str] = None

    # --- read-only view ---------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_finished(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def secure_mode(self) -> bool:
        return self._secure_mode

    @property
    def violation_count(self) -> int:
        return self._violations

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def current_index(self) -> int:
        return self._current

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    @property
    def message(self) -> Optional[str]:
        return self._last_message

    def answers(self) -> List[Optional[str]]:
        """Answers in test order."""
        return list(self._answers)

    def display_answers(self) -> List[Optional[str]]:
        """Answers in the order questions are shown to the student."""
        return [self._answers[slot.original_index] for slot in self._slots]

    def marked_for_review(self) -> List[int]:
        return sorted(self._marked)

    def question_at(self, index: int) -> dict:
        """Question as shown to the student, without the correct option."""
        slot = self._slots[index]
        return {
            "index": index,
            "question_text": slot.question.question_text,
            "options": list(slot.options),
            "selected": self._answers[slot.original_index],
            "marked_for_review": index in self._marked,
        }

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "id": str(self.id),
                "state": self._state.value,
                "secure_mode": self._secure_mode,
                "current_index": self._current,
                "question_count": len(self._slots),
                "answered_count": sum(1 for a in self._answers if a is not None),
                "violation_count": self._violations,
                "violation_limit": self.violation_limit,
                "remaining_seconds": self._remaining,
                "current_question": self.question_at(self._current),
                "answers": self.display_answers(),
                "marked_for_review": self.marked_for_review(),
                "message": self._last_message,
                "score": self._result.score if self._result else None,
            }

    # --- public inputs ----------------------------------------------------

    def enter_secure_mode(self, granted: bool = True) -> bool:
        self.dispatch(EnterSecureMode(granted=granted))
        return self._secure_mode

    def focus_lost(self, source: str = "fullscreen") -> None:
        self.dispatch(FocusLost(source=source))

    def select_answer(self, question_index: int, option: Optional[str]) -> None:
        self.dispatch(SelectAnswer(question_index=question_index, option=option))

    def navigate(self, direction: int) -> int:
        self.dispatch(Navigate(direction=direction))
        return self._current

    def jump_to(self, question_index: int) -> int:
        self.dispatch(JumpTo(question_index=question_index))
        return self._current

    def toggle_review(self, question_index: int) -> None:
        self.dispatch(ToggleReview(question_index=question_index))

    def tick(self, seconds: int = 1) -> None:
        self.dispatch(Tick(seconds=seconds))

    def submit(self) -> SessionResult:
        self.dispatch(Submit())
        return self._result

    # --- event processing -------------------------------------------------

    def dispatch(self, event) -> None:
        """Apply one event. The only method that mutates session state."""
        with self._lock:
            finished_now = self._apply(event)
        if finished_now is not None and self._on_finish is not None:
            self._on_finish(finished_now)

    def _apply(self, event) -> Optional[SessionResult]:
        if isinstance(event, EnterSecureMode):
            self._on_enter_secure_mode(event)
        elif isinstance(event, FocusLost):
            return self._on_focus_lost(event)
        elif isinstance(event, SelectAnswer):
            self._on_select_answer(event)
        elif isinstance(event, Navigate):
            self._require_interactive()
            step = 1 if event.direction > 0 else -1 if event.direction < 0 else 0
            self._current = self._clamp(self._current + step)
        elif isinstance(event, JumpTo):
            self._require_interactive()
            self._current = self._clamp(event.question_index)
        elif isinstance(event, ToggleReview):
            self._require_interactive()
            index = self._check_index(event.question_index)
            self._marked ^= {index}
        elif isinstance(event, Tick):
            return self._on_tick(event)
        elif isinstance(event, Submit):
            if self.is_finished:
                return None
            return self._finish(event.reason)
        else:
            raise InvalidOperationError(f"Unsupported session event: {type(event).__name__}")
        return None

    def _on_enter_secure_mode(self, event: EnterSecureMode) -> None:
        if self.is_finished:
            raise InvalidOperationError("This test session has already ended")
        if not event.granted:
            # retryable; the client keeps prompting
            logger.info("Session %s: secure mode denied, still %s", self.id, self._state.value)
            self._last_message = "Fullscreen is required to take this test."
            return
        self._secure_mode = True
        if self._state == SessionState.AWAITING_SECURE_MODE:
            self._state = SessionState.IN_PROGRESS
            logger.info("Session %s: started", self.id)
        self._last_message = None

    def _on_focus_lost(self, event: FocusLost) -> Optional[SessionResult]:
        # nothing to lose before the first entry or after the end, and a second
        # signal inside the same episode is the same loss of focus
        if self._state != SessionState.IN_PROGRESS or not self._secure_mode:
            logger.debug("Session %s: ignoring %s focus loss", self.id, event.source)
            return None

        self._secure_mode = False
        self._violations += 1
        logger.warning(
            "Session %s: violation %d/%d (%s)",
            self.id, self._violations, self.violation_limit, event.source,
        )

        if self._violations >= self.violation_limit:
            self._last_message = (
                f"Disqualified: {self._violations} violations recorded, "
                f"the limit is {self.violation_limit}."
            )
            return self._finish(FinishReason.VIOLATIONS)

        self._answers = [None] * len(self._answers)
        self._marked.clear()
        self._current = 0
        self._last_message = (
            f"Violation {self._violations}/{self.violation_limit}: you left the secure window. "
            "Your answers have been cleared."
        )
        return None

    def _on_select_answer(self, event: SelectAnswer) -> None:
        self._require_interactive()
        index = self._check_index(event.question_index)
        slot = self._slots[index]
        if event.option is not None and event.option not in slot.options:
            raise ValidationError("Selected option is not one of the question's options")
        self._answers[slot.original_index] = event.option

    def _on_tick(self, event: Tick) -> Optional[SessionResult]:
        if self.is_finished or event.seconds <= 0:
            return None
        self._remaining = max(0, self._remaining - event.seconds)
        if self._remaining == 0:
            logger.info("Session %s: time is up", self.id)
            return self._finish(FinishReason.TIMEOUT)
        return None

    def _finish(self, reason: FinishReason) -> SessionResult:
        self._state = (
            SessionState.DISQUALIFIED if reason == FinishReason.VIOLATIONS
            else SessionState.SUBMITTED
        )
        self._secure_mode = False
        answers = list(self._answers)
        self._result = SessionResult(
            answers=answers,
            violation_count=self._violations,
            violation_limit=self.violation_limit,
            score=score_answers(self.questions, answers),
            total_questions=len(self.questions),
            reason=reason,
        )
        logger.info(
            "Session %s: %s (%s), score %d/%d, violations %d",
            self.id, self._state.value, reason.value,
            self._result.score, self._result.total_questions, self._violations,
        )
        return self._result

    # --- helpers ----------------------------------------------------------

    def _require_interactive(self) -> None:
        if self._state == SessionState.AWAITING_SECURE_MODE:
            raise InvalidOperationError("Enter fullscreen before answering")
        if self.is_finished:
            raise InvalidOperationError("This test session has already ended")
        if not self._secure_mode:
            raise InvalidOperationError("Return to fullscreen to continue the test")

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self._slots):
            raise ValidationError("Question index is out of range")
        return index

    def _clamp(self, index: int) -> int:
        return max(0, min(len(self._slots) - 1, index))
