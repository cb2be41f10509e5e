"""Follow and connection request models."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from quizly.db.base import Base


STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_REJECTED = "rejected"
RESPONSES = (STATUS_ACCEPTED, STATUS_REJECTED)


class FollowRequest(Base):
    """Student asking to follow a faculty account; one record per pair."""
    
    __tablename__ = "follow_requests"
    __table_args__ = (UniqueConstraint("student_id", "faculty_id", name="uq_follow_request_pair"),)
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    faculty_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    student = relationship("User", foreign_keys=[student_id])
    faculty = relationship("User", foreign_keys=[faculty_id])


class ConnectionRequest(Base):
    """Faculty-to-faculty connection request."""

    __tablename__ = "connection_requests"
    __table_args__ = (UniqueConstraint("from_faculty_id", "to_faculty_id", name="uq_connection_request_pair"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    from_faculty_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    to_faculty_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    from_faculty = relationship("User", foreign_keys=[from_faculty_id])
    to_faculty = relationship("User", foreign_keys=[to_faculty_id])
