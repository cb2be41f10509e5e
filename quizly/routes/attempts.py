"""Finished attempt routes: student history and result review."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from quizly.db.sessions import get_db
from quizly.models import TestAttempt, User
from quizly.core.security import get_current_student, get_current_user
from quizly.services.analytics import AnalyticsService, percentage


router = APIRouter(prefix="/attempts", tags=["Attempts"])


class AttemptSummary(BaseModel):
    id: str
    test_id: Optional[str]
    test_title: str
    score: int
    total_questions: int
    percentage: float
    violation_count: int
    disqualified: bool
    submitted_at: str


class ReviewedQuestion(BaseModel):
    index: int
    question_text: str
    options: List[str]
    selected: Optional[str]
    correct_option: str
    is_correct: bool
    explanation: str


class AttemptReviewResponse(AttemptSummary):
    questions: List[ReviewedQuestion]


def attempt_summary(attempt: TestAttempt) -> AttemptSummary:
    return AttemptSummary(
        id=str(attempt.id),
        test_id=str(attempt.test_id) if attempt.test_id else None,
        test_title=attempt.test_title,
        score=attempt.score,
        total_questions=attempt.total_questions,
        percentage=percentage(attempt.score, attempt.total_questions),
        violation_count=attempt.violation_count,
        disqualified=attempt.disqualified,
        submitted_at=attempt.submitted_at.isoformat(),
    )


@router.get("", response_model=List[AttemptSummary])
def get_history(
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """The caller's finished attempts, newest first."""
    return [attempt_summary(a) for a in AnalyticsService(db).history(current_user)]


@router.get("/{attempt_id}", response_model=AttemptReviewResponse)
def get_attempt(
    attempt_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AnalyticsService(db).attempt_review(current_user, attempt_id)
