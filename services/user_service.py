"""
User account creation shared by self-registration and coach-created athletes.
"""

from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, ValidationError
from core.password_policy import validate_password
from core.security import get_password_hash
from models import User, UserRole


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    norm = normalize_email(email)
    if not norm:
        return None
    return db.query(User).filter(func.lower(User.email) == norm).first()


def ensure_email_available(db: Session, email: str, *, exclude_user_id: Optional[UUID] = None) -> str:
    """Return the normalized email, or raise ConflictError if another account uses it."""
    norm = normalize_email(email)
    existing = get_user_by_email(db, norm)
    if existing and existing.id != exclude_user_id:
        raise ConflictError("Email already in use")
    return norm


def check_password_policy(password: str) -> None:
    ok, errors = validate_password(password)
    if not ok:
        raise ValidationError(
            "Validation error",
            details=[{"loc": ["password"], "msg": msg, "type": "value_error"} for msg in errors],
        )


def build_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    height: Optional[float] = None,
    weight: Optional[float] = None,
    date_of_birth: Optional[date] = None,
    gender: Optional[str] = None,
) -> User:
    """
    Validate and stage a new user on the session.

    The caller commits, so it can add related rows in the same transaction.
    """
    check_password_policy(password)
    norm = ensure_email_available(db, email)
    user = User(
        name=name.strip(),
        email=norm,
        password_hash=get_password_hash(password),
        role=role,
        height=height,
        weight=weight,
        date_of_birth=date_of_birth,
        gender=gender,
    )
    db.add(user)
    return user
