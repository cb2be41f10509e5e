"""Test invitation notification model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from quizly.db.base import Base


STATUS_NEW = "new"
STATUS_IGNORED = "ignored"


class Notification(Base):
    """One invitation per follower, created when a test is published."""
    
    __tablename__ = "notifications"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    faculty_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    test_id = Column(Uuid, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    test_snapshot = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_NEW, index=True)  # new / ignored
    created_at = Column(DateTime, default=datetime.utcnow)
    action_timestamp = Column(DateTime)
    
    # Relationships
    test = relationship("Test", back_populates="notifications")
    student = relationship("User", foreign_keys=[student_id])
    faculty = relationship("User", foreign_keys=[faculty_id])
