from sqlalchemy import Column, Float, Date, DateTime, Enum, ForeignKey, JSON, Text, Uuid, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import enum
import uuid
from datetime import datetime, timezone


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    ATHLETE = "ATHLETE"
    COACH = "COACH"
    ADMIN = "ADMIN"


class LinkStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class TestType(str, enum.Enum):
    __test__ = False

    TREADMILL = "TREADMILL"
    SKI_ERG = "SKI_ERG"
    BIKE_ERG = "BIKE_ERG"


class ScheduleType(str, enum.Enum):
    TEST_SESSION = "TEST_SESSION"
    MEETING = "MEETING"
    TRAINING = "TRAINING"
    OTHER = "OTHER"


class ScheduleStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class SessionStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class User(Base):
    """Any account: athletes, coaches and admins share one table."""
    __tablename__ = "user_account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False)
    name = Column(Text, nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), default=UserRole.ATHLETE, nullable=False)

    # Profile
    height = Column(Float, nullable=True)  # cm
    weight = Column(Float, nullable=True)  # kg
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Text, nullable=True)

    # Link rows go with either endpoint user
    coach_links = relationship(
        "CoachAthleteLink",
        foreign_keys="CoachAthleteLink.coach_id",
        back_populates="coach",
        cascade="all, delete-orphan",
    )
    athlete_links = relationship(
        "CoachAthleteLink",
        foreign_keys="CoachAthleteLink.athlete_id",
        back_populates="athlete",
        cascade="all, delete-orphan",
    )
    athlete_tests = relationship(
        "TestSession",
        foreign_keys="TestSession.athlete_id",
        back_populates="athlete",
        cascade="all, delete-orphan",
        order_by="TestSession.date.desc()",
    )

    __table_args__ = (
        Index("ix_user_account_role", "role"),
    )


class CoachAthleteLink(Base):
    """
    Connection between one coach and one athlete.

    Rows created through a coach request start PENDING; rows created when a
    coach registers the athlete themselves take the column default.
    """
    __tablename__ = "coach_athlete"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False)
    coach_id = Column(Uuid, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True)
    athlete_id = Column(Uuid, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(LinkStatus, name="link_status"), default=LinkStatus.ACCEPTED, nullable=False)

    coach = relationship("User", foreign_keys=[coach_id], back_populates="coach_links")
    athlete = relationship("User", foreign_keys=[athlete_id], back_populates="athlete_links")

    __table_args__ = (
        UniqueConstraint("coach_id", "athlete_id", name="uq_coach_athlete_pair"),
    )


class TestProtocol(Base):
    """
    Named test definition with an ordered list of stages.

    stages: [{"duration": 4, "intensity": 60, "targetHeartRate": 140,
              "targetLactate": 1.8, "notes": "..."}, ...]
    """
    __test__ = False
    __tablename__ = "test_protocol"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    test_type = Column(Enum(TestType, name="test_type"), nullable=False)
    stages = Column(JSONType, nullable=False, default=list)
    created_by = Column(Uuid, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True)

    creator = relationship("User", lazy="joined")
    sessions = relationship(
        "TestSession",
        back_populates="protocol",
        cascade="all, delete-orphan",
        order_by="TestSession.date.desc()",
    )


class Schedule(Base):
    """Calendar entry owned by the coach who created it."""
    __tablename__ = "schedule"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    type = Column(Enum(ScheduleType, name="schedule_type"), nullable=False)
    status = Column(Enum(ScheduleStatus, name="schedule_status"), default=ScheduleStatus.ACTIVE, nullable=False)
    created_by = Column(Uuid, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True)

    creator = relationship("User", lazy="joined")
    # Deleting a schedule detaches (does not delete) its session
    test_session = relationship("TestSession", back_populates="schedule", uselist=False)

    __table_args__ = (
        Index("ix_schedule_start_time", "start_time"),
    )


class TestSession(Base):
    """One administered test: athlete + protocol + conducting coach."""
    __test__ = False
    __tablename__ = "test_session"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text, nullable=True)
    protocol_id = Column(Uuid, ForeignKey("test_protocol.id", ondelete="CASCADE"), nullable=False, index=True)
    athlete_id = Column(Uuid, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True)
    conducted_by_id = Column(Uuid, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True)
    schedule_id = Column(Uuid, ForeignKey("schedule.id", ondelete="SET NULL"), nullable=True, index=True)
    data = Column(JSONType, nullable=False, default=dict)  # free-form results (lactate/HR per stage etc.)
    status = Column(Enum(SessionStatus, name="session_status"), default=SessionStatus.SCHEDULED, nullable=False)
    feedback = Column(Text, nullable=True)

    athlete = relationship("User", foreign_keys=[athlete_id], back_populates="athlete_tests")
    conducted_by = relationship("User", foreign_keys=[conducted_by_id])
    protocol = relationship("TestProtocol", back_populates="sessions")
    schedule = relationship("Schedule", back_populates="test_session")
