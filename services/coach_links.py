"""
Coach/athlete link workflow.

A link connects one coach to one athlete and moves through:

    (no link) --request_link--> PENDING --accept_link--> ACCEPTED

A coach who registers an athlete directly gets an ACCEPTED link without the
request/accept handshake. Links disappear only when either user is deleted.

At most one link exists per (coach, athlete) pair. The pre-insert lookup
gives the usual error message; the ``uq_coach_athlete_pair`` constraint
catches two concurrent requests that both pass the lookup, and that
IntegrityError is reported as the same conflict.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from core.config import settings
from core.exceptions import ConflictError, NotFoundError
from models import CoachAthleteLink, LinkStatus, User, UserRole
from services.user_service import build_user

logger = logging.getLogger(__name__)

REACCEPT_IDEMPOTENT = "idempotent"
REACCEPT_REJECT = "reject"


def get_link(db: Session, *, coach_id: UUID, athlete_id: UUID) -> Optional[CoachAthleteLink]:
    return (
        db.query(CoachAthleteLink)
        .filter(
            CoachAthleteLink.coach_id == coach_id,
            CoachAthleteLink.athlete_id == athlete_id,
        )
        .first()
    )


def coach_manages_athlete(db: Session, *, coach_id: UUID, athlete_id: UUID) -> bool:
    """True when the coach holds an accepted link to the athlete."""
    link = get_link(db, coach_id=coach_id, athlete_id=athlete_id)
    return link is not None and link.status == LinkStatus.ACCEPTED


def request_link(db: Session, *, coach_id: UUID, athlete_id: UUID) -> CoachAthleteLink:
    """Create a PENDING link from a coach to an athlete."""
    athlete = db.get(User, athlete_id)
    if not athlete or athlete.role != UserRole.ATHLETE:
        raise NotFoundError("Athlete")

    if get_link(db, coach_id=coach_id, athlete_id=athlete_id):
        raise ConflictError("Request already exists")

    link = CoachAthleteLink(coach_id=coach_id, athlete_id=athlete_id, status=LinkStatus.PENDING)
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Request already exists")
    db.refresh(link)

    logger.info(
        "Coach link requested",
        extra={"extra_fields": {"link_id": str(link.id), "coach_id": str(coach_id), "athlete_id": str(athlete_id)}},
    )
    return link


def accept_link(
    db: Session,
    *,
    athlete_id: UUID,
    link_id: UUID,
    reaccept_policy: Optional[str] = None,
) -> CoachAthleteLink:
    """
    Accept a pending request addressed to this athlete.

    Links that do not exist and links addressed to someone else both answer
    NotFound, so callers cannot probe for other athletes' requests.
    """
    link = db.get(CoachAthleteLink, link_id)
    if not link or link.athlete_id != athlete_id:
        raise NotFoundError("Request", "Not found or forbidden")

    if link.status == LinkStatus.ACCEPTED:
        policy = reaccept_policy or settings.LINK_REACCEPT_POLICY
        if policy == REACCEPT_REJECT:
            raise ConflictError("Request already accepted")
        return link

    link.status = LinkStatus.ACCEPTED
    db.commit()
    db.refresh(link)

    logger.info(
        "Coach link accepted",
        extra={"extra_fields": {"link_id": str(link.id), "coach_id": str(link.coach_id), "athlete_id": str(athlete_id)}},
    )
    return link


def list_for_coach(db: Session, *, coach_id: UUID) -> Dict[str, List[User]]:
    """The coach's athletes, partitioned by link status."""
    links = (
        db.query(CoachAthleteLink)
        .options(joinedload(CoachAthleteLink.athlete))
        .filter(CoachAthleteLink.coach_id == coach_id)
        .order_by(CoachAthleteLink.created_at)
        .all()
    )
    return {
        "accepted": [link.athlete for link in links if link.status == LinkStatus.ACCEPTED],
        "pending": [link.athlete for link in links if link.status == LinkStatus.PENDING],
    }


def list_pending_for_athlete(db: Session, *, athlete_id: UUID) -> List[CoachAthleteLink]:
    """PENDING requests addressed to the athlete, with the requesting coach loaded."""
    return (
        db.query(CoachAthleteLink)
        .options(joinedload(CoachAthleteLink.coach))
        .filter(
            CoachAthleteLink.athlete_id == athlete_id,
            CoachAthleteLink.status == LinkStatus.PENDING,
        )
        .order_by(CoachAthleteLink.created_at)
        .all()
    )


def linked_athlete_ids(db: Session, *, coach_id: UUID) -> List[UUID]:
    """Athletes linked to the coach in any status."""
    rows = db.query(CoachAthleteLink.athlete_id).filter(CoachAthleteLink.coach_id == coach_id).all()
    return [row[0] for row in rows]


def create_athlete_as_coach(
    db: Session,
    *,
    creator_id: UUID,
    creator_role: UserRole,
    profile,
) -> User:
    """
    Register an athlete on behalf of a coach or admin.

    A coach creator gets a link with the column default status (ACCEPTED);
    an admin creator gets no link. User and link commit together.
    """
    athlete = build_user(
        db,
        name=profile.name,
        email=profile.email,
        password=profile.password,
        role=UserRole.ATHLETE,
        height=profile.height,
        weight=profile.weight,
        date_of_birth=profile.date_of_birth,
        gender=profile.gender,
    )
    if creator_role == UserRole.COACH:
        db.add(CoachAthleteLink(coach_id=creator_id, athlete=athlete))

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")
    db.refresh(athlete)

    logger.info(
        "Athlete created",
        extra={"extra_fields": {"athlete_id": str(athlete.id), "creator_id": str(creator_id), "creator_role": creator_role.value}},
    )
    return athlete
