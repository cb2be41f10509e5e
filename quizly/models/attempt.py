"""Finished test attempt model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from quizly.db.base import Base


class TestAttempt(Base):
    """Immutable record of one completed proctored session."""

    __test__ = False  # not a pytest class
    __tablename__ = "test_attempts"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # kept after revocation so history survives; the title is snapshotted below
    test_id = Column(Uuid, ForeignKey("tests.id", ondelete="SET NULL"), index=True)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    test_title = Column(String(200), nullable=False)
    student_info = Column(JSON, nullable=False)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    answers = Column(JSON, nullable=False)  # list of option text or null, in test order
    questions = Column(JSON, nullable=False)  # snapshot at attempt time
    violation_count = Column(Integer, nullable=False, default=0)
    disqualified = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime, default=datetime.utcnow, index=True)
    
    # Relationships
    student = relationship("User", foreign_keys=[student_id])
