"""
Authentication API endpoints.

Provides:
- User registration (athletes and coaches)
- Login (sets the session cookie)
- Logout
- Current user lookup
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field
from typing import Literal
import logging

from core.auth import CurrentUser, get_current_user
from core.config import settings
from core.database import get_db
from core.exceptions import ConflictError, UnauthorizedError
from core.security import create_access_token, verify_password, ACCESS_TOKEN_EXPIRE_MINUTES
from models import User, UserRole
from schemas import CamelModel, SuccessResponse, UserResponse
from services.user_service import build_user, get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class UserRegister(BaseModel):
    """Schema for self-registration. Admin accounts cannot be self-registered."""
    name: str = Field(min_length=1)
    email: EmailStr
    password: str
    role: Literal["ATHLETE", "COACH"] = "ATHLETE"


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class LoginResponse(CamelModel):
    """Schema for login response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = ACCESS_TOKEN_EXPIRE_MINUTES * 60  # seconds
    user: UserResponse


def issue_session_token(user: User) -> str:
    return create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/register", response_model=SuccessResponse)
def register(
    user_data: UserRegister,
    db: Session = Depends(get_db)
):
    """Register a new athlete or coach account."""
    user = build_user(
        db,
        name=user_data.name,
        email=user_data.email,
        password=user_data.password,
        role=UserRole(user_data.role),
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")

    logger.info(f"User registered: {user.id} ({user.role.value})")
    return {"success": True}


@router.post("/login", response_model=LoginResponse)
def login(
    credentials: UserLogin,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Authenticate a user and start a session.

    The token is set as an HTTP-only cookie and also returned in the body
    for API clients that prefer the Authorization header.
    """
    user = get_user_by_email(db, credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Failed login attempt for {credentials.email.lower()}")
        raise UnauthorizedError("Invalid email or password")

    token = issue_session_token(user)
    set_session_cookie(response, token)
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": user,
    }


@router.post("/logout", response_model=SuccessResponse)
def logout(response: Response):
    """End the session by clearing the cookie."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"success": True}


@router.get("/me", response_model=UserResponse)
def me(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Profile of the signed-in user."""
    return db.get(User, current_user.id)
