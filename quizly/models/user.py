"""User model and the follow / connection association tables."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Integer, Table, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from quizly.db.base import Base


ROLE_FACULTY = "faculty"
ROLE_STUDENT = "student"
ROLES = (ROLE_FACULTY, ROLE_STUDENT)


# student -> faculty; the composite primary key makes "following" a true set
student_follows = Table(
    "student_follows",
    Base.metadata,
    Column("student_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("faculty_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

# faculty <-> faculty, stored once per direction
faculty_connections = Table(
    "faculty_connections",
    Base.metadata,
    Column("faculty_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("connected_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """Faculty or student account."""
    
    __tablename__ = "users"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False, index=True)  # faculty / student
    faculty_handle = Column(String(150), unique=True, index=True)  # faculty only, e.g. "JaneDoe-faculty101"
    college_name = Column(String(200))
    is_id_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    following = relationship(
        "User",
        secondary=student_follows,
        primaryjoin=id == student_follows.c.student_id,
        secondaryjoin=id == student_follows.c.faculty_id,
        collection_class=set,
        back_populates="followers",
    )
    followers = relationship(
        "User",
        secondary=student_follows,
        primaryjoin=id == student_follows.c.faculty_id,
        secondaryjoin=id == student_follows.c.student_id,
        collection_class=set,
        back_populates="following",
    )
    connections = relationship(
        "User",
        secondary=faculty_connections,
        primaryjoin=id == faculty_connections.c.faculty_id,
        secondaryjoin=id == faculty_connections.c.connected_id,
        collection_class=set,
    )
    question_sets = relationship("QuestionSet", back_populates="owner", cascade="all, delete-orphan")
    tests = relationship("Test", back_populates="owner", cascade="all, delete-orphan")

    @property
    def is_faculty(self) -> bool:
        return self.role == ROLE_FACULTY


class RoleCounter(Base):
    """Monotonic per-role sequence used to allocate faculty handles."""

    __tablename__ = "role_counters"

    role = Column(String(20), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
