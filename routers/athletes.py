"""
Athlete API endpoints.

Coaches see and manage the athletes linked to them; admins see every
athlete. Athletes use the pending-request endpoints to answer coaches.

Fixed paths (/request, /pending-coach-requests, /accept-coach-request) are
registered before /{athlete_id}.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional, Union
from uuid import UUID
import logging

from core.auth import (
    CurrentUser,
    get_current_user,
    require_athlete,
    require_coach,
    require_coach_or_admin,
)
from core.database import get_db
from core.exceptions import ConflictError, ForbiddenError, NotFoundError
from models import TestSession, User, UserRole
from schemas import (
    AthleteCreate,
    AthleteDetail,
    AthleteSummary,
    AthleteUpdate,
    CoachAthletesResponse,
    LinkAccept,
    LinkRequestCreate,
    PendingCoachRequest,
    SuccessResponse,
)
from services import coach_links
from services.user_service import ensure_email_available

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/athletes", tags=["athletes"])


def _search_athletes(db: Session, term: str, exclude_ids: List[UUID]) -> List[User]:
    """Case-insensitive substring match on name or email."""
    needle = term.strip().lower()
    query = db.query(User).filter(
        User.role == UserRole.ATHLETE,
        or_(
            func.lower(User.name).contains(needle, autoescape=True),
            func.lower(User.email).contains(needle, autoescape=True),
        ),
    )
    if exclude_ids:
        query = query.filter(User.id.notin_(exclude_ids))
    return query.order_by(User.name).all()


def _authorize_athlete(db: Session, current_user: CurrentUser, athlete_id: UUID, *, allow_self: bool = False) -> None:
    if current_user.is_admin:
        return
    if allow_self and current_user.id == athlete_id:
        return
    if current_user.role == UserRole.COACH and coach_links.coach_manages_athlete(
        db, coach_id=current_user.id, athlete_id=athlete_id
    ):
        return
    raise ForbiddenError()


def _get_athlete(db: Session, athlete_id: UUID) -> User:
    athlete = db.get(User, athlete_id)
    if not athlete or athlete.role != UserRole.ATHLETE:
        raise NotFoundError("Athlete")
    return athlete


@router.get("", response_model=Union[CoachAthletesResponse, List[AthleteSummary]])
def list_athletes(
    search: Optional[str] = Query(default=None),
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """
    List athletes.

    - COACH: ``{"accepted": [...], "pending": [...]}``
    - ADMIN: every athlete
    - ``?search=`` switches to search mode; coaches do not see athletes
      they are already linked to (in any status).
    """
    if search:
        exclude_ids = []
        if current_user.role == UserRole.COACH:
            exclude_ids = coach_links.linked_athlete_ids(db, coach_id=current_user.id)
        athletes = _search_athletes(db, search, exclude_ids)
        return [AthleteSummary.model_validate(a) for a in athletes]

    if current_user.role == UserRole.COACH:
        grouped = coach_links.list_for_coach(db, coach_id=current_user.id)
        return CoachAthletesResponse(
            accepted=[AthleteSummary.model_validate(a) for a in grouped["accepted"]],
            pending=[AthleteSummary.model_validate(a) for a in grouped["pending"]],
        )

    athletes = db.query(User).filter(User.role == UserRole.ATHLETE).order_by(User.name).all()
    return [AthleteSummary.model_validate(a) for a in athletes]


@router.post("", response_model=AthleteSummary, status_code=status.HTTP_201_CREATED)
def create_athlete(
    profile: AthleteCreate,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """
    Create an athlete account.

    When a coach creates the athlete, the two are linked straight away
    without a pending request.
    """
    return coach_links.create_athlete_as_coach(
        db,
        creator_id=current_user.id,
        creator_role=current_user.role,
        profile=profile,
    )


@router.post("/request", response_model=SuccessResponse)
def request_athlete(
    body: LinkRequestCreate,
    current_user: CurrentUser = Depends(require_coach),
    db: Session = Depends(get_db)
):
    """Send a connection request from the calling coach to an athlete."""
    coach_links.request_link(db, coach_id=current_user.id, athlete_id=body.athlete_id)
    return {"success": True}


@router.get("/pending-coach-requests", response_model=List[PendingCoachRequest])
def pending_coach_requests(
    current_user: CurrentUser = Depends(require_athlete),
    db: Session = Depends(get_db)
):
    """Coach requests waiting for the calling athlete's answer."""
    return coach_links.list_pending_for_athlete(db, athlete_id=current_user.id)


@router.patch("/accept-coach-request", response_model=SuccessResponse)
def accept_coach_request(
    body: LinkAccept,
    current_user: CurrentUser = Depends(require_athlete),
    db: Session = Depends(get_db)
):
    """Accept a coach request addressed to the calling athlete."""
    coach_links.accept_link(db, athlete_id=current_user.id, link_id=body.request_id)
    return {"success": True}


@router.get("/{athlete_id}", response_model=AthleteDetail)
def get_athlete(
    athlete_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Athlete profile with their test history. Athletes may read their own."""
    athlete = (
        db.query(User)
        .options(selectinload(User.athlete_tests).joinedload(TestSession.protocol))
        .filter(User.id == athlete_id, User.role == UserRole.ATHLETE)
        .first()
    )
    if not athlete:
        raise NotFoundError("Athlete")
    _authorize_athlete(db, current_user, athlete_id, allow_self=True)
    return athlete


@router.put("/{athlete_id}", response_model=AthleteSummary)
def update_athlete(
    athlete_id: UUID,
    changes: AthleteUpdate,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Update profile fields; omitted fields are left unchanged."""
    athlete = _get_athlete(db, athlete_id)
    _authorize_athlete(db, current_user, athlete_id)

    data = changes.model_dump(exclude_unset=True)
    if "email" in data:
        data["email"] = ensure_email_available(db, data["email"], exclude_user_id=athlete.id)
    for field, value in data.items():
        setattr(athlete, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")
    db.refresh(athlete)
    return athlete


@router.delete("/{athlete_id}", response_model=SuccessResponse)
def delete_athlete(
    athlete_id: UUID,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Delete the athlete account along with its coach links and test sessions."""
    athlete = _get_athlete(db, athlete_id)
    _authorize_athlete(db, current_user, athlete_id)

    db.delete(athlete)
    db.commit()

    logger.info(f"Athlete {athlete_id} deleted by {current_user.id}")
    return {"success": True}
