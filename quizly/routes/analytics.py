"""Faculty dashboard and per-test analytics routes."""
from typing import Dict, List
from uuid import UUID
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session
from pydantic import BaseModel

from quizly.db.sessions import get_db
from quizly.models import User
from quizly.core.security import get_current_faculty
from quizly.services.analytics import AnalyticsService


router = APIRouter(prefix="/analytics", tags=["Analytics"])


class DashboardResponse(BaseModel):
    published_tests: int
    drafts: int
    total_questions: int
    followers: int
    pending_follow_requests: int
    pending_violation_alerts: int
    badges: List[str]


class QuestionStats(BaseModel):
    index: int
    question_text: str
    correct_count: int
    unanswered_count: int
    correct_rate: float


class TestReportResponse(BaseModel):
    test_id: str
    title: str
    total_questions: int
    attempt_count: int
    mean_score: float
    median_score: float
    highest_score: int
    lowest_score: int
    mean_percentage: float
    score_distribution: Dict[str, int]
    violation_distribution: Dict[str, int]
    disqualified_count: int
    questions: List[QuestionStats]


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return AnalyticsService(db).dashboard(current_user)


@router.get("/tests/{test_id}", response_model=TestReportResponse)
def get_test_report(
    test_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """Score and violation statistics over every recorded attempt."""
    return AnalyticsService(db).test_report(current_user, test_id)


@router.get("/tests/{test_id}/export")
def export_results(
    test_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """Download the attempts of a test as CSV."""
    content = AnalyticsService(db).export_csv(current_user, test_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="results-{test_id}.csv"'},
    )
