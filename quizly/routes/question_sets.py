"""Draft question set routes."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from quizly.db.sessions import get_db
from quizly.models import QuestionSet, User
from quizly.core.security import get_current_faculty
from quizly.schemas.mcq import MCQ, Difficulty, Taxonomy
from quizly.services.question_generator import GenerationRequest, ImageInput, QuestionGenerator
from quizly.services.question_sets import QuestionSetStore


router = APIRouter(prefix="/question-sets", tags=["Question Sets"])


def get_question_generator() -> QuestionGenerator:
    return QuestionGenerator()


# Request/Response schemas
class ImagePayload(BaseModel):
    mime_type: str = Field(pattern="^image/")
    data: str


class GenerateRequest(BaseModel):
    topic: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    taxonomy: Taxonomy = Taxonomy.UNDERSTANDING
    count: int = Field(default=5, ge=1)
    study_material: str = ""
    image: Optional[ImagePayload] = None


class ManualQuestion(BaseModel):
    question_text: str
    options: List[str]
    correct_option: str
    explanation: str = ""


class ManualSetRequest(BaseModel):
    topic: Optional[str] = None
    questions: List[ManualQuestion]


class QuestionSetResponse(BaseModel):
    id: str
    source: str
    topic: Optional[str]
    created_at: str
    questions: List[MCQ]


def question_set_response(question_set: QuestionSet) -> QuestionSetResponse:
    return QuestionSetResponse(
        id=str(question_set.id),
        source=question_set.source,
        topic=question_set.topic,
        created_at=question_set.created_at.isoformat(),
        questions=[MCQ.model_validate(q) for q in question_set.questions],
    )


@router.post("/generate", response_model=QuestionSetResponse, status_code=status.HTTP_201_CREATED)
def generate_question_set(
    request: GenerateRequest,
    current_user: User = Depends(get_current_faculty),
    generator: QuestionGenerator = Depends(get_question_generator),
    db: Session = Depends(get_db)
):
    """
    Generate MCQs with the AI question service and store them as a draft.

    Raises:
        502: the generator failed or returned the wrong number / shape of questions
    """
    generation = GenerationRequest(
        topic=request.topic.strip(),
        difficulty=request.difficulty,
        taxonomy=request.taxonomy,
        count=request.count,
        study_material=request.study_material,
        image=ImageInput(mime_type=request.image.mime_type, data=request.image.data) if request.image else None,
    )
    question_set = QuestionSetStore(db).generate(current_user, generator, generation)
    return question_set_response(question_set)


@router.post("", response_model=QuestionSetResponse, status_code=status.HTTP_201_CREATED)
def save_manual_question_set(
    request: ManualSetRequest,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """Save hand-written MCQs as a draft. Each needs 4 unique options including the answer."""
    question_set = QuestionSetStore(db).save_manual(
        current_user,
        [q.model_dump() for q in request.questions],
        topic=request.topic,
    )
    return question_set_response(question_set)


@router.get("", response_model=List[QuestionSetResponse])
def list_question_sets(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [question_set_response(qs) for qs in QuestionSetStore(db).list_drafts(current_user)]


@router.get("/{question_set_id}", response_model=QuestionSetResponse)
def get_question_set(
    question_set_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return question_set_response(QuestionSetStore(db).get(current_user, question_set_id))


@router.delete("/{question_set_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question_set(
    question_set_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    QuestionSetStore(db).delete(current_user, question_set_id)
