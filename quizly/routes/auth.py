"""Authentication routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field
from datetime import timedelta

from quizly.db.sessions import get_db
from quizly.models.user import User, ROLE_FACULTY, ROLE_STUDENT
from quizly.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    get_current_user
)
from quizly.core.config import settings
from quizly.core.exceptions import InvalidOperationError
from quizly.services.accounts import allocate_faculty_handle


router = APIRouter(prefix="/auth", tags=["Authentication"])


# Request/Response schemas
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    role: str = Field(default=ROLE_STUDENT, pattern="^(faculty|student)$")
    college_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    name: str
    email: str
    role: str
    faculty_handle: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    faculty_handle: Optional[str]
    college_name: Optional[str]
    is_id_verified: bool
    following: List[str]
    faculty_connections: List[str]
    created_at: str


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        name=user.name,
        email=user.email,
        role=user.role,
        faculty_handle=user.faculty_handle,
        college_name=user.college_name,
        is_id_verified=user.is_id_verified,
        following=sorted(str(f.id) for f in user.following),
        faculty_connections=sorted(str(f.id) for f in user.connections),
        created_at=user.created_at.isoformat(),
    )


def _token_for(user: User) -> TokenResponse:
    access_token = create_access_token(
        data={"sub": str(user.id)},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return TokenResponse(
        access_token=access_token,
        user_id=str(user.id),
        name=user.name,
        email=user.email,
        role=user.role,
        faculty_handle=user.faculty_handle,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new faculty or student account.

    - Faculty accounts get a handle such as ``JaneDoe-faculty101`` and start
      unverified
    - Returns JWT access token
    """
    existing_user = db.query(User).filter(User.email == request.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    is_faculty = request.role == ROLE_FACULTY
    user = User(
        name=request.name.strip(),
        email=request.email,
        password_hash=get_password_hash(request.password),
        role=request.role,
        college_name=request.college_name,
        faculty_handle=allocate_faculty_handle(db, request.name) if is_faculty else None,
        is_id_verified=not is_faculty,
    )

    db.add(user)
    db.commit()
    db.refresh(user)

    return _token_for(user)


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Login with email and password."""
    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    return _token_for(user)


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return user_response(current_user)


@router.post("/verify-id", response_model=UserResponse)
def verify_id(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Mark the caller's faculty ID as verified.

    The document check itself belongs to the identity provider; this records
    its outcome.
    """
    if current_user.role != ROLE_FACULTY:
        raise InvalidOperationError("Only faculty accounts need ID verification")
    current_user.is_id_verified = True
    db.commit()
    db.refresh(current_user)
    return user_response(current_user)
