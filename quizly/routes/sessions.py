"""Live proctored session routes.

The browser adapter reports fullscreen exits and visibility changes to
``/focus-lost``; both map to the same engine event.
"""
from typing import Callable, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from quizly.models import User
from quizly.core.security import get_current_student
from quizly.services.proctoring import ProctoredSession
from quizly.services.session_registry import SessionRegistry, registry


router = APIRouter(prefix="/sessions", tags=["Sessions"])


def get_registry() -> SessionRegistry:
    return registry


# Request/Response schemas
class QuestionView(BaseModel):
    index: int
    question_text: str
    options: List[str]
    selected: Optional[str]
    marked_for_review: bool


class SessionResponse(BaseModel):
    id: str
    state: str
    secure_mode: bool
    current_index: int
    question_count: int
    answered_count: int
    violation_count: int
    violation_limit: int
    remaining_seconds: int
    current_question: QuestionView
    answers: List[Optional[str]]
    marked_for_review: List[int]
    message: Optional[str]
    score: Optional[int]
    attempt_id: Optional[str] = None


class SecureModeRequest(BaseModel):
    granted: bool = True


class FocusLostRequest(BaseModel):
    source: str = Field(default="fullscreen", pattern="^(fullscreen|visibility|blur)$")


class AnswerRequest(BaseModel):
    question_index: int
    option: Optional[str] = None


class NavigateRequest(BaseModel):
    direction: int = Field(ge=-1, le=1)


class JumpRequest(BaseModel):
    question_index: int


class TickRequest(BaseModel):
    seconds: int = Field(default=1, ge=1)


def session_response(session: ProctoredSession, session_registry: SessionRegistry) -> SessionResponse:
    """Serialize the session; a finished session is dropped from the registry."""
    view = session.snapshot()
    if session.is_finished:
        attempt_id = session_registry.attempt_id(session.id)
        view["attempt_id"] = str(attempt_id) if attempt_id else None
        session_registry.discard(session.id)
    return SessionResponse(**view)


def _apply(
    session_id: UUID,
    student: User,
    session_registry: SessionRegistry,
    action: Callable[[ProctoredSession], object],
) -> SessionResponse:
    session = session_registry.get(session_id, student.id)
    # elapsed time may have ended the session before this request's action
    if not session.is_finished:
        action(session)
    return session_response(session, session_registry)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: UUID,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    session = session_registry.get(session_id, current_user.id)
    return session_response(session, session_registry)


@router.post("/{session_id}/secure-mode", response_model=SessionResponse)
def enter_secure_mode(
    session_id: UUID,
    request: SecureModeRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    """Report whether fullscreen was granted. A denial is retryable."""
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.enter_secure_mode(request.granted))


@router.post("/{session_id}/focus-lost", response_model=SessionResponse)
def focus_lost(
    session_id: UUID,
    request: FocusLostRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    """
    Record loss of the secure window.

    Below the limit every answer is cleared; at the limit the attempt ends
    and is recorded as disqualified.
    """
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.focus_lost(request.source))


@router.post("/{session_id}/answer", response_model=SessionResponse)
def select_answer(
    session_id: UUID,
    request: AnswerRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.select_answer(request.question_index, request.option))


@router.post("/{session_id}/navigate", response_model=SessionResponse)
def navigate(
    session_id: UUID,
    request: NavigateRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.navigate(request.direction))


@router.post("/{session_id}/jump", response_model=SessionResponse)
def jump_to_question(
    session_id: UUID,
    request: JumpRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.jump_to(request.question_index))


@router.post("/{session_id}/review", response_model=SessionResponse)
def toggle_review(
    session_id: UUID,
    request: JumpRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    """Flag or unflag a question for review."""
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.toggle_review(request.question_index))


@router.post("/{session_id}/tick", response_model=SessionResponse)
def tick(
    session_id: UUID,
    request: TickRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    return _apply(session_id, current_user, session_registry,
                  lambda s: s.tick(request.seconds))


@router.post("/{session_id}/submit", response_model=SessionResponse)
def submit(
    session_id: UUID,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry)
):
    return _apply(session_id, current_user, session_registry, lambda s: s.submit())
