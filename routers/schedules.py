"""
Schedule API endpoints.

Schedules are calendar entries owned by the coach who created them. An
athlete can see the entries attached to their own test sessions.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload
from typing import List
from uuid import UUID

from core.auth import CurrentUser, get_current_user, require_coach, require_coach_or_admin
from core.database import get_db
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from models import Schedule, TestSession, UserRole
from schemas import ScheduleCreate, ScheduleResponse, ScheduleUpdate, SuccessResponse, naive_utc

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


def _with_session():
    return joinedload(Schedule.test_session).options(
        joinedload(TestSession.athlete),
        joinedload(TestSession.protocol),
    )


def _load_schedule(db: Session, schedule_id: UUID) -> Schedule:
    schedule = (
        db.query(Schedule)
        .options(_with_session())
        .filter(Schedule.id == schedule_id)
        .first()
    )
    if not schedule:
        raise NotFoundError("Schedule")
    return schedule


def _can_view(schedule: Schedule, current_user: CurrentUser) -> bool:
    if current_user.owns(schedule.created_by):
        return True
    session = schedule.test_session
    return session is not None and session.athlete_id == current_user.id


@router.get("", response_model=List[ScheduleResponse])
def list_schedules(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Schedules visible to the caller, earliest first.

    Coaches see the ones they created, athletes the ones attached to their
    test sessions, admins everything.
    """
    query = db.query(Schedule).options(_with_session())
    if current_user.role == UserRole.COACH:
        query = query.filter(Schedule.created_by == current_user.id)
    elif current_user.role == UserRole.ATHLETE:
        query = query.join(TestSession, TestSession.schedule_id == Schedule.id).filter(
            TestSession.athlete_id == current_user.id
        )
    return query.order_by(Schedule.start_time.asc()).all()


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    schedule: ScheduleCreate,
    current_user: CurrentUser = Depends(require_coach),
    db: Session = Depends(get_db)
):
    db_schedule = Schedule(**schedule.model_dump(), created_by=current_user.id)
    db.add(db_schedule)
    db.commit()
    return _load_schedule(db, db_schedule.id)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(
    schedule_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    schedule = _load_schedule(db, schedule_id)
    if not _can_view(schedule, current_user):
        raise ForbiddenError()
    return schedule


@router.put("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: UUID,
    changes: ScheduleUpdate,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Partial update; omitted fields are left unchanged."""
    schedule = _load_schedule(db, schedule_id)
    if not current_user.owns(schedule.created_by):
        raise ForbiddenError()

    data = changes.model_dump(exclude_unset=True)
    start = data.get("start_time", schedule.start_time)
    end = data.get("end_time", schedule.end_time)
    if naive_utc(end) <= naive_utc(start):
        raise ValidationError("endTime must be after startTime", field="endTime")

    for field, value in data.items():
        setattr(schedule, field, value)
    db.commit()
    return _load_schedule(db, schedule.id)


@router.delete("/{schedule_id}", response_model=SuccessResponse)
def delete_schedule(
    schedule_id: UUID,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Delete a schedule. An attached test session is kept and detached."""
    schedule = _load_schedule(db, schedule_id)
    if not current_user.owns(schedule.created_by):
        raise ForbiddenError()
    db.delete(schedule)
    db.commit()
    return {"success": True}
