"""Violation alert routes for faculty."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel

from quizly.db.sessions import get_db
from quizly.models import User, ViolationAlert
from quizly.core.security import get_current_faculty
from quizly.services.test_workflow import TestWorkflow


router = APIRouter(prefix="/alerts", tags=["Violation Alerts"])


class AlertResponse(BaseModel):
    id: str
    student_id: str
    student_name: Optional[str]
    test_id: str
    test_title: str
    status: str
    created_at: str
    resolved_at: Optional[str]


def alert_response(alert: ViolationAlert) -> AlertResponse:
    return AlertResponse(
        id=str(alert.id),
        student_id=str(alert.student_id),
        student_name=alert.student.name if alert.student else None,
        test_id=str(alert.test_id),
        test_title=alert.test_title,
        status=alert.status,
        created_at=alert.created_at.isoformat(),
        resolved_at=alert.resolved_at.isoformat() if alert.resolved_at else None,
    )


@router.get("", response_model=List[AlertResponse])
def list_alerts(
    status: Optional[str] = Query(default=None, pattern="^(pending|resolved)$"),
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [alert_response(a) for a in TestWorkflow(db).list_alerts(current_user, status)]


@router.post("/{alert_id}/grant", response_model=AlertResponse)
def grant_reattempt(
    alert_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """
    Lift a disqualification and send the student a fresh invitation.

    Granting an already resolved alert changes nothing.
    """
    return alert_response(TestWorkflow(db).grant_reattempt(current_user, alert_id))
