from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, date, timezone
from uuid import UUID
from typing import Any, Dict, List, Optional

from models import ScheduleStatus, ScheduleType, SessionStatus, TestType, UserRole


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _reject_nulls(model: BaseModel, fields: tuple) -> None:
    # Partial updates may omit these, but must not clear them
    for name in fields:
        if name in model.model_fields_set and getattr(model, name) is None:
            raise ValueError(f"{to_camel(name)} may not be null")


def naive_utc(value: datetime) -> datetime:
    """Compare datetimes as naive UTC; SQLite hands back naive values."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class SuccessResponse(BaseModel):
    success: bool = True


# --- Users / athletes ---

class UserSummary(CamelModel):
    id: UUID
    name: str
    email: str


class CreatorSummary(CamelModel):
    name: str
    email: str


class UserResponse(CamelModel):
    id: UUID
    name: str
    email: str
    role: UserRole


class AthleteCreate(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    height: Optional[float] = Field(default=None, gt=0)  # cm
    weight: Optional[float] = Field(default=None, gt=0)  # kg
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None


class AthleteUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    height: Optional[float] = Field(default=None, gt=0)
    weight: Optional[float] = Field(default=None, gt=0)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        _reject_nulls(self, ("name", "email"))
        return self


class AthleteSummary(CamelModel):
    id: UUID
    name: str
    email: str
    height: Optional[float] = None
    weight: Optional[float] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None


class ProtocolBrief(CamelModel):
    id: UUID
    name: str
    test_type: TestType


class AthleteTestSummary(CamelModel):
    id: UUID
    date: datetime
    status: SessionStatus
    protocol: ProtocolBrief


class AthleteDetail(AthleteSummary):
    athlete_tests: List[AthleteTestSummary] = []


class CoachAthletesResponse(BaseModel):
    """A coach's athletes split by link status."""
    accepted: List[AthleteSummary]
    pending: List[AthleteSummary]


# --- Coach/athlete link workflow ---

class LinkRequestCreate(CamelModel):
    athlete_id: UUID


class LinkAccept(CamelModel):
    request_id: UUID


class PendingCoachRequest(CamelModel):
    id: UUID
    coach: UserSummary


# --- Protocols ---

class ProtocolStage(CamelModel):
    duration: float = Field(ge=1)  # minutes
    intensity: float = Field(ge=0, le=100)  # percent
    target_heart_rate: Optional[float] = None
    target_lactate: Optional[float] = None
    notes: Optional[str] = None


class ProtocolCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    test_type: TestType
    stages: List[ProtocolStage]


class ProtocolUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    test_type: Optional[TestType] = None
    stages: Optional[List[ProtocolStage]] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        _reject_nulls(self, ("name", "test_type", "stages"))
        return self


class ProtocolResponse(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    test_type: TestType
    stages: List[Dict[str, Any]]
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    creator: CreatorSummary


class ProtocolSessionSummary(CamelModel):
    id: UUID
    date: datetime
    athlete: CreatorSummary


class ProtocolDetail(ProtocolResponse):
    sessions: List[ProtocolSessionSummary] = []


# --- Schedules ---

class ScheduleCreate(CamelModel):
    start_time: datetime
    end_time: datetime
    title: str = Field(min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    type: ScheduleType
    status: ScheduleStatus = ScheduleStatus.ACTIVE

    @model_validator(mode="after")
    def ends_after_start(self):
        if naive_utc(self.end_time) <= naive_utc(self.start_time):
            raise ValueError("endTime must be after startTime")
        return self


class ScheduleUpdate(CamelModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    type: Optional[ScheduleType] = None
    status: Optional[ScheduleStatus] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        _reject_nulls(self, ("start_time", "end_time", "title", "type", "status"))
        if self.start_time and self.end_time and naive_utc(self.end_time) <= naive_utc(self.start_time):
            raise ValueError("endTime must be after startTime")
        return self


class ScheduleBrief(CamelModel):
    id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: ScheduleStatus


class ScheduleSessionSummary(CamelModel):
    id: UUID
    date: datetime
    status: SessionStatus
    athlete: UserSummary
    protocol: ProtocolBrief


class ScheduleResponse(CamelModel):
    id: UUID
    start_time: datetime
    end_time: datetime
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    type: ScheduleType
    status: ScheduleStatus
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    creator: UserSummary
    test_session: Optional[ScheduleSessionSummary] = None


# --- Test sessions ---

class SessionCreate(CamelModel):
    date: datetime
    notes: Optional[str] = None
    protocol_id: UUID
    athlete_id: UUID
    data: Dict[str, Any] = Field(default_factory=dict)
    status: SessionStatus = SessionStatus.SCHEDULED
    feedback: Optional[str] = None
    schedule_id: Optional[UUID] = None


class SessionUpdate(CamelModel):
    date: Optional[datetime] = None
    notes: Optional[str] = None
    protocol_id: Optional[UUID] = None
    athlete_id: Optional[UUID] = None
    data: Optional[Dict[str, Any]] = None
    status: Optional[SessionStatus] = None
    feedback: Optional[str] = None
    schedule_id: Optional[UUID] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        _reject_nulls(self, ("date", "protocol_id", "athlete_id", "data", "status"))
        return self


class SessionResponse(CamelModel):
    id: UUID
    date: datetime
    notes: Optional[str] = None
    protocol_id: UUID
    athlete_id: UUID
    conducted_by_id: UUID
    schedule_id: Optional[UUID] = None
    data: Dict[str, Any]
    status: SessionStatus
    feedback: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    athlete: UserSummary
    conducted_by: UserSummary
    protocol: ProtocolBrief
    schedule: Optional[ScheduleBrief] = None
