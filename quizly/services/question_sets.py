"""Draft question sets: AI-generated or hand-written, prior to publication."""
import logging
import uuid
from typing import List

from sqlalchemy.orm import Session

from quizly.core.exceptions import GenerationError, NotFoundError, ValidationError
from quizly.models import QuestionSet, User
from quizly.models import question_set as question_set_model
from quizly.schemas.mcq import parse_mcqs
from quizly.services.question_generator import GenerationRequest, QuestionGenerator

logger = logging.getLogger(__name__)


class QuestionSetStore:
    def __init__(self, db: Session):
        self.db = db

    def generate(self, faculty: User, generator: QuestionGenerator, request: GenerationRequest) -> QuestionSet:
        """Ask the generator for MCQs and keep them as a new draft."""
        try:
            questions = generator.generate(request)
        except GenerationError:
            logger.warning("Generation failed for %s (topic=%r)", faculty.id, request.topic)
            raise
        question_set = QuestionSet(
            owner_id=faculty.id,
            source=question_set_model.SOURCE_GENERATED,
            topic=request.topic or None,
            questions=[q.model_dump() for q in questions],
        )
        return self._save(question_set)

    def save_manual(self, faculty: User, items: List[dict], topic: str = None) -> QuestionSet:
        if not items:
            raise ValidationError("Add at least one question before saving")
        questions = parse_mcqs(items)
        question_set = QuestionSet(
            owner_id=faculty.id,
            source=question_set_model.SOURCE_MANUAL,
            topic=topic,
            questions=[q.model_dump() for q in questions],
        )
        return self._save(question_set)

    def list_drafts(self, faculty: User) -> List[QuestionSet]:
        return self.db.query(QuestionSet).filter(
            QuestionSet.owner_id == faculty.id
        ).order_by(QuestionSet.created_at.desc()).all()

    def get(self, faculty: User, question_set_id: uuid.UUID) -> QuestionSet:
        question_set = self.db.query(QuestionSet).filter(
            QuestionSet.id == question_set_id,
            QuestionSet.owner_id == faculty.id,
        ).first()
        if not question_set:
            raise NotFoundError("Question set not found")
        return question_set

    def delete(self, faculty: User, question_set_id: uuid.UUID) -> None:
        question_set = self.get(faculty, question_set_id)
        self.db.delete(question_set)
        self.db.commit()

    def _save(self, question_set: QuestionSet) -> QuestionSet:
        self.db.add(question_set)
        self.db.commit()
        self.db.refresh(question_set)
        logger.info(
            "Saved %s question set %s with %d questions",
            question_set.source, question_set.id, len(question_set.questions),
        )
        return question_set
