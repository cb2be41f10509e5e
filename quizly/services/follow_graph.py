"""Follow (student -> faculty) and connection (faculty <-> faculty) graph."""
import logging
import uuid
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from quizly.core.exceptions import (
    DuplicateRequestError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from quizly.models import ChatMessage, ConnectionRequest, FollowRequest, User
from quizly.models import follow_request as request_model
from quizly.models.user import ROLE_FACULTY

logger = logging.getLogger(__name__)


class FollowGraph:
    """Request/response workflows that gate who receives test invitations."""

    def __init__(self, db: Session):
        self.db = db

    def find_faculty(self, handle: str) -> User:
        faculty = self.db.query(User).filter(
            User.faculty_handle == (handle or "").strip(),
            User.role == ROLE_FACULTY,
        ).first()
        if not faculty:
            raise NotFoundError("No faculty account matches that ID")
        return faculty

    # --- follow -----------------------------------------------------------

    def send_follow_request(self, student: User, faculty_handle: str) -> FollowRequest:
        """Create a pending request, or reopen a rejected/accepted one for the same pair."""
        faculty = self.find_faculty(faculty_handle)
        request = self.db.query(FollowRequest).filter(
            FollowRequest.student_id == student.id,
            FollowRequest.faculty_id == faculty.id,
        ).first()

        if request is None:
            request = FollowRequest(
                student_id=student.id,
                faculty_id=faculty.id,
                status=request_model.STATUS_PENDING,
            )
            self.db.add(request)
        elif request.status == request_model.STATUS_PENDING:
            raise DuplicateRequestError("A follow request to this faculty is already pending")
        else:
            request.status = request_model.STATUS_PENDING

        self.db.commit()
        self.db.refresh(request)
        logger.info("Follow request %s: %s -> %s", request.id, student.id, faculty.id)
        return request

    def pending_follow_requests(self, faculty: User) -> List[FollowRequest]:
        return self.db.query(FollowRequest).filter(
            FollowRequest.faculty_id == faculty.id,
            FollowRequest.status == request_model.STATUS_PENDING,
        ).order_by(FollowRequest.created_at).all()

    def respond_to_follow_request(self, faculty: User, request_id: uuid.UUID, status: str) -> FollowRequest:
        if status not in request_model.RESPONSES:
            raise ValidationError("Response must be 'accepted' or 'rejected'")
        request = self.db.query(FollowRequest).filter(
            FollowRequest.id == request_id,
            FollowRequest.faculty_id == faculty.id,
        ).first()
        if not request:
            raise NotFoundError("Follow request not found")

        request.status = status
        if status == request_model.STATUS_ACCEPTED:
            # set semantics: accepting twice leaves a single edge
            request.student.following.add(request.faculty)
        self.db.commit()
        self.db.refresh(request)
        logger.info("Follow request %s %s", request.id, status)
        return request

    def unfollow(self, student: User, faculty_id: uuid.UUID) -> None:
        faculty = self.db.get(User, faculty_id)
        if faculty is not None and faculty in student.following:
            student.following.discard(faculty)
            self.db.commit()
            logger.info("Student %s unfollowed %s", student.id, faculty_id)

    def following(self, student: User) -> List[User]:
        return sorted(student.following, key=lambda u: u.name.lower())

    def followers(self, faculty: User) -> List[User]:
        return sorted(faculty.followers, key=lambda u: u.name.lower())

    # --- faculty connections ----------------------------------------------

    def send_connection_request(self, faculty: User, to_handle: str) -> ConnectionRequest:
        target = self.find_faculty(to_handle)
        if target.id == faculty.id:
            raise InvalidOperationError("You cannot connect with yourself")

        request = self.db.query(ConnectionRequest).filter(
            ConnectionRequest.from_faculty_id == faculty.id,
            ConnectionRequest.to_faculty_id == target.id,
        ).first()
        if request is None:
            request = ConnectionRequest(
                from_faculty_id=faculty.id,
                to_faculty_id=target.id,
                status=request_model.STATUS_PENDING,
            )
            self.db.add(request)
        elif request.status == request_model.STATUS_PENDING:
            raise DuplicateRequestError("A connection request to this faculty is already pending")
        else:
            request.status = request_model.STATUS_PENDING

        self.db.commit()
        self.db.refresh(request)
        logger.info("Connection request %s: %s -> %s", request.id, faculty.id, target.id)
        return request

    def pending_connection_requests(self, faculty: User) -> List[ConnectionRequest]:
        return self.db.query(ConnectionRequest).filter(
            ConnectionRequest.to_faculty_id == faculty.id,
            ConnectionRequest.status == request_model.STATUS_PENDING,
        ).order_by(ConnectionRequest.created_at).all()

    def respond_to_connection_request(self, faculty: User, request_id: uuid.UUID, status: str) -> ConnectionRequest:
        if status not in request_model.RESPONSES:
            raise ValidationError("Response must be 'accepted' or 'rejected'")
        request = self.db.query(ConnectionRequest).filter(
            ConnectionRequest.id == request_id,
            ConnectionRequest.to_faculty_id == faculty.id,
        ).first()
        if not request:
            raise NotFoundError("Connection request not found")

        request.status = status
        if status == request_model.STATUS_ACCEPTED:
            request.from_faculty.connections.add(request.to_faculty)
            request.to_faculty.connections.add(request.from_faculty)
        self.db.commit()
        self.db.refresh(request)
        logger.info("Connection request %s %s", request.id, status)
        return request

    def connections(self, faculty: User) -> List[User]:
        return sorted(faculty.connections, key=lambda u: u.name.lower())

    # --- messaging --------------------------------------------------------

    def _connected_peer(self, faculty: User, other_id: uuid.UUID) -> User:
        other = self.db.get(User, other_id)
        if other is None or other.role != ROLE_FACULTY:
            raise NotFoundError("Faculty not found")
        if other not in faculty.connections:
            raise InvalidOperationError("You can only message faculty you are connected with")
        return other

    def send_message(
        self,
        faculty: User,
        recipient_id: uuid.UUID,
        text: str = "",
        image_url: Optional[str] = None,
    ) -> ChatMessage:
        text = (text or "").strip()
        image_url = (image_url or "").strip() or None
        if not text and not image_url:
            raise ValidationError("A message needs text or an image")
        recipient = self._connected_peer(faculty, recipient_id)

        message = ChatMessage(
            sender_id=faculty.id,
            recipient_id=recipient.id,
            text=text,
            image_url=image_url,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        logger.info("Message %s: %s -> %s", message.id, faculty.id, recipient.id)
        return message

    def conversation(self, faculty: User, other_id: uuid.UUID) -> List[ChatMessage]:
        """Both directions of the thread with ``other_id``, oldest first."""
        other = self._connected_peer(faculty, other_id)
        return self.db.query(ChatMessage).filter(or_(
            and_(ChatMessage.sender_id == faculty.id, ChatMessage.recipient_id == other.id),
            and_(ChatMessage.sender_id == other.id, ChatMessage.recipient_id == faculty.id),
        )).order_by(ChatMessage.created_at).all()
