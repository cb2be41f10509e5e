"""Published test routes: publish, revoke, start."""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, field_validator

from quizly.db.sessions import get_db
from quizly.models import Test, User
from quizly.core.security import get_current_faculty, get_current_student
from quizly.schemas.mcq import MCQ, CustomField, StudentInfo
from quizly.services.session_registry import SessionRegistry
from quizly.services.test_workflow import TestWorkflow
from quizly.routes.question_sets import QuestionSetResponse, question_set_response
from quizly.routes.sessions import SessionResponse, get_registry, session_response


router = APIRouter(prefix="/tests", tags=["Tests"])


# Request/Response schemas
class PublishRequest(BaseModel):
    question_set_id: UUID
    title: str
    duration_minutes: int
    end_date: Optional[datetime] = None
    form_fields_mode: str = Field(default="default", pattern="^(default|custom)$")
    custom_fields: List[CustomField] = Field(default_factory=list)
    shuffle_questions: bool = False
    shuffle_options: bool = False

    @field_validator("end_date")
    @classmethod
    def as_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class TestResponse(BaseModel):
    id: str
    title: str
    duration_minutes: int
    question_count: int
    end_date: Optional[str]
    form_fields_mode: str
    custom_fields: List[CustomField]
    shuffle_questions: bool
    shuffle_options: bool
    disqualified_student_ids: List[str]
    created_at: str
    questions: Optional[List[MCQ]] = None


class PublishResponse(BaseModel):
    status: str  # complete / no_followers / partial
    notified_count: int
    failed_count: int
    test: TestResponse


class StartAttemptRequest(BaseModel):
    notification_id: UUID
    student: StudentInfo


def test_response(test: Test, include_questions: bool = False) -> TestResponse:
    return TestResponse(
        id=str(test.id),
        title=test.title,
        duration_minutes=test.duration_minutes,
        question_count=len(test.questions or []),
        end_date=test.end_date.isoformat() if test.end_date else None,
        form_fields_mode=test.form_fields_mode,
        custom_fields=[CustomField(**f) for f in (test.custom_fields or [])],
        shuffle_questions=test.shuffle_questions,
        shuffle_options=test.shuffle_options,
        disqualified_student_ids=sorted(str(i) for i in test.disqualified_student_ids),
        created_at=test.created_at.isoformat(),
        questions=[MCQ.model_validate(q) for q in test.questions] if include_questions else None,
    )


@router.post("", response_model=PublishResponse, status_code=status.HTTP_201_CREATED)
def publish_test(
    request: PublishRequest,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """
    Publish a draft question set as a timed test and notify every follower.

    ``status`` tells a test with no followers (``no_followers``) apart from
    one where some notifications could not be written (``partial``).
    """
    result = TestWorkflow(db).publish(
        current_user,
        request.question_set_id,
        title=request.title,
        duration_minutes=request.duration_minutes,
        end_date=request.end_date,
        form_fields_mode=request.form_fields_mode,
        custom_fields=request.custom_fields,
        shuffle_questions=request.shuffle_questions,
        shuffle_options=request.shuffle_options,
    )
    return PublishResponse(
        status=result.status,
        notified_count=result.notified,
        failed_count=len(result.failed_student_ids),
        test=test_response(result.test),
    )


@router.get("", response_model=List[TestResponse])
def list_published_tests(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [test_response(t) for t in TestWorkflow(db).list_published(current_user)]


@router.get("/{test_id}", response_model=TestResponse)
def get_published_test(
    test_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """Owner view of a test, answer key included."""
    test = TestWorkflow(db).get_owned_test(current_user, test_id)
    return test_response(test, include_questions=True)


@router.delete("/{test_id}", response_model=QuestionSetResponse)
def revoke_test(
    test_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """Revoke a test: its notifications are deleted and its questions return as a draft."""
    draft = TestWorkflow(db).revoke(current_user, test_id)
    return question_set_response(draft)


@router.post("/{test_id}/attempts", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def start_attempt(
    test_id: UUID,
    request: StartAttemptRequest,
    current_user: User = Depends(get_current_student),
    session_registry: SessionRegistry = Depends(get_registry),
    db: Session = Depends(get_db)
):
    """
    Start a proctored attempt from an invitation.

    The invitation is consumed. The session waits for fullscreen before any
    answer is accepted.
    """
    session = TestWorkflow(db, registry=session_registry).start_attempt(
        current_user,
        test_id,
        request.notification_id,
        request.student,
    )
    return session_response(session, session_registry)
