"""
Test session API endpoints.

A test session is one administered test: an athlete runs a protocol under
the coach who conducts it, optionally booked against a schedule entry.
Coaches see the sessions they conduct, athletes their own, admins all.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional
from uuid import UUID

from core.auth import CurrentUser, get_current_user, require_coach, require_coach_or_admin
from core.database import get_db
from core.exceptions import ConflictError, ForbiddenError, NotFoundError
from models import Schedule, TestProtocol, TestSession, User, UserRole
from schemas import SessionCreate, SessionResponse, SessionUpdate, SuccessResponse
from services import coach_links

router = APIRouter(prefix="/api/test-sessions", tags=["test_sessions"])


def _session_query(db: Session):
    return db.query(TestSession).options(
        joinedload(TestSession.athlete),
        joinedload(TestSession.conducted_by),
        joinedload(TestSession.protocol),
        joinedload(TestSession.schedule),
    )


def _load_session(db: Session, session_id: UUID) -> TestSession:
    test_session = _session_query(db).filter(TestSession.id == session_id).first()
    if not test_session:
        raise NotFoundError("Test session")
    return test_session


def _check_athlete(db: Session, current_user: CurrentUser, athlete_id: UUID) -> None:
    athlete = db.get(User, athlete_id)
    if not athlete or athlete.role != UserRole.ATHLETE:
        raise NotFoundError("Athlete")
    if current_user.is_admin:
        return
    if not coach_links.coach_manages_athlete(db, coach_id=current_user.id, athlete_id=athlete_id):
        raise ForbiddenError("Athlete is not connected to this coach")


def _check_protocol(db: Session, current_user: CurrentUser, protocol_id: UUID) -> None:
    protocol = db.get(TestProtocol, protocol_id)
    if not protocol:
        raise NotFoundError("Protocol")
    if not current_user.owns(protocol.created_by):
        raise ForbiddenError()


def _check_schedule(
    db: Session,
    current_user: CurrentUser,
    schedule_id: UUID,
    session_id: Optional[UUID] = None,
) -> None:
    schedule = db.get(Schedule, schedule_id)
    if not schedule:
        raise NotFoundError("Schedule")
    if not current_user.owns(schedule.created_by):
        raise ForbiddenError()
    booked = db.query(TestSession.id).filter(TestSession.schedule_id == schedule_id).first()
    if booked and booked[0] != session_id:
        raise ConflictError("Schedule already has a test session")


@router.get("", response_model=List[SessionResponse])
def list_test_sessions(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Sessions visible to the caller, most recent first."""
    query = _session_query(db)
    if current_user.role == UserRole.COACH:
        query = query.filter(TestSession.conducted_by_id == current_user.id)
    elif current_user.role == UserRole.ATHLETE:
        query = query.filter(TestSession.athlete_id == current_user.id)
    return query.order_by(TestSession.date.desc()).all()


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_test_session(
    payload: SessionCreate,
    current_user: CurrentUser = Depends(require_coach),
    db: Session = Depends(get_db)
):
    """
    Record a test session conducted by the calling coach.

    The athlete must be connected to the coach, and the protocol and schedule
    (if any) must belong to them.
    """
    _check_athlete(db, current_user, payload.athlete_id)
    _check_protocol(db, current_user, payload.protocol_id)
    if payload.schedule_id:
        _check_schedule(db, current_user, payload.schedule_id)

    test_session = TestSession(**payload.model_dump(), conducted_by_id=current_user.id)
    db.add(test_session)
    db.commit()
    return _load_session(db, test_session.id)


@router.get("/{session_id}", response_model=SessionResponse)
def get_test_session(
    session_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    test_session = _load_session(db, session_id)
    if not (current_user.owns(test_session.conducted_by_id) or test_session.athlete_id == current_user.id):
        raise ForbiddenError()
    return test_session


@router.put("/{session_id}", response_model=SessionResponse)
def update_test_session(
    session_id: UUID,
    changes: SessionUpdate,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Partial update, e.g. recording results and feedback after the test."""
    test_session = _load_session(db, session_id)
    if not current_user.owns(test_session.conducted_by_id):
        raise ForbiddenError()

    data = changes.model_dump(exclude_unset=True)
    if data.get("athlete_id") and data["athlete_id"] != test_session.athlete_id:
        _check_athlete(db, current_user, data["athlete_id"])
    if data.get("protocol_id") and data["protocol_id"] != test_session.protocol_id:
        _check_protocol(db, current_user, data["protocol_id"])
    if data.get("schedule_id") and data["schedule_id"] != test_session.schedule_id:
        _check_schedule(db, current_user, data["schedule_id"], session_id=test_session.id)

    for field, value in data.items():
        setattr(test_session, field, value)
    db.commit()
    # Relationships may point at the old rows until reloaded
    db.expire(test_session)
    return _load_session(db, test_session.id)


@router.delete("/{session_id}", response_model=SuccessResponse)
def delete_test_session(
    session_id: UUID,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    test_session = _load_session(db, session_id)
    if not current_user.owns(test_session.conducted_by_id):
        raise ForbiddenError()
    db.delete(test_session)
    db.commit()
    return {"success": True}
