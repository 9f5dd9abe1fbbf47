"""
Authentication and authorization dependencies.

Provides FastAPI dependencies for:
- Resolving the caller's session into an explicit CurrentUser value
- Role-based access control

Handlers never look the session up themselves; they declare
``current_user: CurrentUser = Depends(...)`` and receive the resolved
identity.
"""
from dataclasses import dataclass
from fastapi import Depends
from fastapi.security import APIKeyCookie, HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Iterable, Optional
from uuid import UUID

from core.config import settings
from core.database import get_db
from core.exceptions import ForbiddenError, UnauthorizedError
from core.security import decode_access_token
from models import User, UserRole

# auto_error=False so a missing session answers 401 (not 403)
session_cookie = APIKeyCookie(name=settings.SESSION_COOKIE_NAME, auto_error=False)
bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Resolved identity of the caller for one request."""
    id: UUID
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def owns(self, owner_id: Optional[UUID]) -> bool:
        """True when the caller is the owner, or an admin."""
        return self.is_admin or owner_id == self.id


def _resolve_token(cookie_token: Optional[str], credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if cookie_token:
        return cookie_token
    if credentials:
        return credentials.credentials
    return None


def get_current_user(
    cookie_token: Optional[str] = Depends(session_cookie),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """
    Resolve the session cookie (or bearer token) into a CurrentUser.

    Raises UnauthorizedError if the token is missing, invalid, or names a
    user that no longer exists.
    """
    token = _resolve_token(cookie_token, credentials)
    if not token:
        raise UnauthorizedError("Unauthorized")

    payload = decode_access_token(token)
    if not payload:
        raise UnauthorizedError("Invalid session")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid session payload")

    try:
        user_id_uuid = UUID(user_id)
    except ValueError:
        raise UnauthorizedError("Invalid session payload")

    user = db.query(User).filter(User.id == user_id_uuid).first()
    if not user:
        raise UnauthorizedError("User not found")

    # Role comes from the database so demotions take effect immediately
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/protocols")
        def create(user: CurrentUser = Depends(require_role([UserRole.COACH, UserRole.ADMIN]))):
            ...
    """
    allowed = tuple(allowed_roles)

    def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise ForbiddenError(
                f"Access denied. Required roles: {[role.value for role in allowed]}"
            )
        return current_user

    return role_checker


require_coach = require_role([UserRole.COACH])
require_athlete = require_role([UserRole.ATHLETE])
require_coach_or_admin = require_role([UserRole.COACH, UserRole.ADMIN])
