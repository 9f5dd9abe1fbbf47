"""
Test protocol API endpoints.

A protocol belongs to the coach who created it. Coaches only ever see their
own protocols; admins see all of them.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, selectinload
from typing import List
from uuid import UUID

from core.auth import CurrentUser, get_current_user, require_coach_or_admin
from core.database import get_db
from core.exceptions import ForbiddenError, NotFoundError
from models import TestProtocol, TestSession, UserRole
from schemas import ProtocolCreate, ProtocolDetail, ProtocolResponse, ProtocolUpdate, SuccessResponse

router = APIRouter(prefix="/api/protocols", tags=["protocols"])


def _stages_to_json(stages) -> list:
    # Stored in wire format so reads return exactly what was written
    return [stage.model_dump(by_alias=True, exclude_none=True) for stage in stages]


def _get_owned_protocol(db: Session, protocol_id: UUID, current_user: CurrentUser) -> TestProtocol:
    protocol = db.get(TestProtocol, protocol_id)
    if not protocol:
        raise NotFoundError("Protocol")
    if not current_user.owns(protocol.created_by):
        raise ForbiddenError()
    return protocol


@router.get("", response_model=List[ProtocolResponse])
def list_protocols(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Coaches get their own protocols, admins get all."""
    query = db.query(TestProtocol)
    if current_user.role == UserRole.COACH:
        query = query.filter(TestProtocol.created_by == current_user.id)
    elif not current_user.is_admin:
        raise ForbiddenError()
    return query.order_by(TestProtocol.created_at.desc()).all()


@router.post("", response_model=ProtocolResponse, status_code=status.HTTP_201_CREATED)
def create_protocol(
    protocol: ProtocolCreate,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    db_protocol = TestProtocol(
        name=protocol.name,
        description=protocol.description,
        test_type=protocol.test_type,
        stages=_stages_to_json(protocol.stages),
        created_by=current_user.id,
    )
    db.add(db_protocol)
    db.commit()
    db.refresh(db_protocol)
    return db_protocol


@router.get("/{protocol_id}", response_model=ProtocolDetail)
def get_protocol(
    protocol_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Protocol with the sessions that used it."""
    protocol = (
        db.query(TestProtocol)
        .options(selectinload(TestProtocol.sessions).joinedload(TestSession.athlete))
        .filter(TestProtocol.id == protocol_id)
        .first()
    )
    if not protocol:
        raise NotFoundError("Protocol")
    if not current_user.owns(protocol.created_by):
        raise ForbiddenError()
    return protocol


@router.put("/{protocol_id}", response_model=ProtocolResponse)
def update_protocol(
    protocol_id: UUID,
    changes: ProtocolUpdate,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Partial update; omitted fields are left unchanged."""
    protocol = _get_owned_protocol(db, protocol_id, current_user)

    data = changes.model_dump(exclude_unset=True)
    if "stages" in data:
        data["stages"] = _stages_to_json(changes.stages)
    for field, value in data.items():
        setattr(protocol, field, value)

    db.commit()
    db.refresh(protocol)
    return protocol


@router.delete("/{protocol_id}", response_model=SuccessResponse)
def delete_protocol(
    protocol_id: UUID,
    current_user: CurrentUser = Depends(require_coach_or_admin),
    db: Session = Depends(get_db)
):
    """Delete a protocol together with the test sessions run against it."""
    protocol = _get_owned_protocol(db, protocol_id, current_user)
    db.delete(protocol)
    db.commit()
    return {"success": True}
