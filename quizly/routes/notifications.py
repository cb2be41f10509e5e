"""Test invitation routes."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from quizly.db.sessions import get_db
from quizly.models import Notification, User
from quizly.core.security import get_current_faculty, get_current_student
from quizly.services.test_workflow import TestWorkflow


router = APIRouter(prefix="/notifications", tags=["Notifications"])


# Response schemas
class NotificationResponse(BaseModel):
    id: str
    test_id: str
    faculty_id: str
    faculty_name: Optional[str]
    student_id: str
    student_name: Optional[str]
    status: str
    test: dict
    created_at: str
    action_timestamp: Optional[str]


def notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=str(notification.id),
        test_id=str(notification.test_id),
        faculty_id=str(notification.faculty_id),
        faculty_name=notification.faculty.name if notification.faculty else None,
        student_id=str(notification.student_id),
        student_name=notification.student.name if notification.student else None,
        status=notification.status,
        test=notification.test_snapshot,
        created_at=notification.created_at.isoformat(),
        action_timestamp=notification.action_timestamp.isoformat() if notification.action_timestamp else None,
    )


@router.get("", response_model=List[NotificationResponse])
def get_inbox(
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """New invitations for tests that have not closed yet, newest first."""
    return [notification_response(n) for n in TestWorkflow(db).inbox(current_user)]


@router.post("/{notification_id}/dismiss", response_model=NotificationResponse)
def dismiss_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """Hide an invitation. The owning faculty sees it in their ignored list."""
    return notification_response(TestWorkflow(db).dismiss(current_user, notification_id))


@router.get("/ignored", response_model=List[NotificationResponse])
def list_ignored(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [notification_response(n) for n in TestWorkflow(db).ignored_by_followers(current_user)]
