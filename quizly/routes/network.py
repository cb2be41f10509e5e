"""Follow and faculty connection routes."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from quizly.db.sessions import get_db
from quizly.models import ChatMessage, ConnectionRequest, FollowRequest, User
from quizly.core.security import get_current_faculty, get_current_student
from quizly.services.follow_graph import FollowGraph


router = APIRouter(prefix="/network", tags=["Network"])


# Request/Response schemas
class HandleRequest(BaseModel):
    faculty_handle: str = Field(min_length=1)


class RespondRequest(BaseModel):
    status: str = Field(pattern="^(accepted|rejected)$")


class ProfileResponse(BaseModel):
    id: str
    name: str
    role: str
    faculty_handle: Optional[str]
    college_name: Optional[str]


class FollowRequestResponse(BaseModel):
    id: str
    student: ProfileResponse
    faculty: ProfileResponse
    status: str
    created_at: str


class ConnectionRequestResponse(BaseModel):
    id: str
    from_faculty: ProfileResponse
    to_faculty: ProfileResponse
    status: str
    created_at: str


class MessageRequest(BaseModel):
    text: str = ""
    image_url: Optional[str] = None


class MessageResponse(BaseModel):
    id: str
    sender_id: str
    recipient_id: str
    text: str
    image_url: Optional[str]
    created_at: str


def profile_response(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=str(user.id),
        name=user.name,
        role=user.role,
        faculty_handle=user.faculty_handle,
        college_name=user.college_name,
    )


def follow_request_response(request: FollowRequest) -> FollowRequestResponse:
    return FollowRequestResponse(
        id=str(request.id),
        student=profile_response(request.student),
        faculty=profile_response(request.faculty),
        status=request.status,
        created_at=request.created_at.isoformat(),
    )


def connection_request_response(request: ConnectionRequest) -> ConnectionRequestResponse:
    return ConnectionRequestResponse(
        id=str(request.id),
        from_faculty=profile_response(request.from_faculty),
        to_faculty=profile_response(request.to_faculty),
        status=request.status,
        created_at=request.created_at.isoformat(),
    )


def message_response(message: ChatMessage) -> MessageResponse:
    return MessageResponse(
        id=str(message.id),
        sender_id=str(message.sender_id),
        recipient_id=str(message.recipient_id),
        text=message.text,
        image_url=message.image_url,
        created_at=message.created_at.isoformat(),
    )


# --- follows ---------------------------------------------------------------

@router.post("/follow-requests", response_model=FollowRequestResponse, status_code=status.HTTP_201_CREATED)
def send_follow_request(
    request: HandleRequest,
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    """
    Ask to follow a faculty account by its handle (e.g. ``JaneDoe-faculty101``).

    Raises:
        404: no faculty has that handle
        409: a request to the same faculty is already pending
    """
    follow_request = FollowGraph(db).send_follow_request(current_user, request.faculty_handle)
    return follow_request_response(follow_request)


@router.get("/follow-requests", response_model=List[FollowRequestResponse])
def list_follow_requests(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [follow_request_response(r) for r in FollowGraph(db).pending_follow_requests(current_user)]


@router.post("/follow-requests/{request_id}/respond", response_model=FollowRequestResponse)
def respond_to_follow_request(
    request_id: UUID,
    request: RespondRequest,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    follow_request = FollowGraph(db).respond_to_follow_request(current_user, request_id, request.status)
    return follow_request_response(follow_request)


@router.delete("/following/{faculty_id}", status_code=status.HTTP_204_NO_CONTENT)
def unfollow(
    faculty_id: UUID,
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    FollowGraph(db).unfollow(current_user, faculty_id)


@router.get("/following", response_model=List[ProfileResponse])
def list_following(
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
):
    return [profile_response(u) for u in FollowGraph(db).following(current_user)]


@router.get("/followers", response_model=List[ProfileResponse])
def list_followers(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [profile_response(u) for u in FollowGraph(db).followers(current_user)]


# --- faculty connections ---------------------------------------------------

@router.post("/connection-requests", response_model=ConnectionRequestResponse, status_code=status.HTTP_201_CREATED)
def send_connection_request(
    request: HandleRequest,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    connection_request = FollowGraph(db).send_connection_request(current_user, request.faculty_handle)
    return connection_request_response(connection_request)


@router.get("/connection-requests", response_model=List[ConnectionRequestResponse])
def list_connection_requests(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [connection_request_response(r) for r in FollowGraph(db).pending_connection_requests(current_user)]


@router.post("/connection-requests/{request_id}/respond", response_model=ConnectionRequestResponse)
def respond_to_connection_request(
    request_id: UUID,
    request: RespondRequest,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    connection_request = FollowGraph(db).respond_to_connection_request(current_user, request_id, request.status)
    return connection_request_response(connection_request)


@router.get("/connections", response_model=List[ProfileResponse])
def list_connections(
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [profile_response(u) for u in FollowGraph(db).connections(current_user)]


# --- messaging -------------------------------------------------------------

@router.post("/connections/{faculty_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    faculty_id: UUID,
    request: MessageRequest,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    """
    Message a connected faculty member.

    Raises:
        404: no faculty with that id
        409: not connected with them
        422: neither text nor an image
    """
    message = FollowGraph(db).send_message(current_user, faculty_id, request.text, request.image_url)
    return message_response(message)


@router.get("/connections/{faculty_id}/messages", response_model=List[MessageResponse])
def list_messages(
    faculty_id: UUID,
    current_user: User = Depends(get_current_faculty),
    db: Session = Depends(get_db)
):
    return [message_response(m) for m in FollowGraph(db).conversation(current_user, faculty_id)]
