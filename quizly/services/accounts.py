"""Account helpers: faculty handle allocation."""
import logging
import re

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizly.core.config import settings
from quizly.models import RoleCounter
from quizly.models.user import ROLE_FACULTY

logger = logging.getLogger(__name__)


def next_sequence(db: Session, role: str) -> int:
    """Atomically increment and return the counter for ``role``.

    The increment is a single UPDATE ... RETURNING, so two registrations can
    never read the same value.
    """
    for _ in range(2):
        value = db.execute(
            update(RoleCounter)
            .where(RoleCounter.role == role)
            .values(value=RoleCounter.value + 1)
            .returning(RoleCounter.value)
        ).scalar_one_or_none()
        if value is not None:
            db.commit()
            return value
        try:
            db.add(RoleCounter(role=role, value=1))
            db.commit()
            return 1
        except IntegrityError:
            # another registration created the row first; increment it instead
            db.rollback()
    raise RuntimeError(f"Could not allocate a sequence number for role {role!r}")


def allocate_faculty_handle(db: Session, name: str) -> str:
    """Return a handle like ``JaneDoe-faculty101``."""
    sanitized = re.sub(r"[^a-zA-Z0-9]", "", name) or "faculty"
    number = settings.FACULTY_ID_BASE + next_sequence(db, ROLE_FACULTY)
    handle = f"{sanitized}-faculty{number}"
    logger.info("Allocated faculty handle %s", handle)
    return handle
