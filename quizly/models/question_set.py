"""Draft question set model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from quizly.db.base import Base


SOURCE_GENERATED = "generated"
SOURCE_MANUAL = "manual"
SOURCE_REVOKED = "revoked"


class QuestionSet(Base):
    """Unpublished batch of MCQs owned by one faculty account."""
    
    __tablename__ = "question_sets"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    source = Column(String(20), nullable=False, default=SOURCE_MANUAL)  # generated / manual / revoked
    topic = Column(String(200))
    questions = Column(JSON, nullable=False, default=list)  # list of MCQ dicts, ordered
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    owner = relationship("User", back_populates="question_sets")
