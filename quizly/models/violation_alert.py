"""Violation alert model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from quizly.db.base import Base


STATUS_PENDING = "pending"
STATUS_RESOLVED = "resolved"


class ViolationAlert(Base):
    """Raised for the owning faculty when a student hits the violation limit."""
    
    __tablename__ = "violation_alerts"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    faculty_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    test_id = Column(Uuid, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    test_title = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)  # pending / resolved
    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime)
    
    # Relationships
    test = relationship("Test", back_populates="violation_alerts")
    student = relationship("User", foreign_keys=[student_id])
