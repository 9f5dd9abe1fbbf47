"""
Pytest configuration and fixtures

The suite runs against an in-memory SQLite database unless
TEST_DATABASE_URL points somewhere else. Every test starts from an empty
schema; tables are created before and dropped after each test.
"""
import os
import sys
from datetime import timedelta

import pytest

# Settings are read at import time, so the environment is prepared first
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-do-not-use-in-production-0123456789")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient  # noqa: E402

from core.database import Base, SessionLocal, engine  # noqa: E402
from core.security import create_access_token, get_password_hash  # noqa: E402
from main import app  # noqa: E402
from models import CoachAthleteLink, LinkStatus, User, UserRole  # noqa: E402

TEST_PASSWORD = "Vo2-Ladder-2026"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Fresh client per test so session cookies never leak between tests."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user():
    """Factory: create and commit a user, return the detached row."""
    counter = {"n": 0}

    def _make(role=UserRole.ATHLETE, name=None, email=None, **profile):
        counter["n"] += 1
        session = SessionLocal()
        try:
            user = User(
                name=name or f"{role.value.title()} {counter['n']}",
                email=email or f"{role.value.lower()}{counter['n']}@example.com",
                password_hash=get_password_hash(TEST_PASSWORD),
                role=role,
                **profile,
            )
            session.add(user)
            session.commit()
            return user
        finally:
            session.close()

    return _make


@pytest.fixture
def make_link():
    """Factory: connect a coach and an athlete with the given status."""

    def _make(coach, athlete, status=LinkStatus.ACCEPTED):
        session = SessionLocal()
        try:
            link = CoachAthleteLink(coach_id=coach.id, athlete_id=athlete.id, status=status)
            session.add(link)
            session.commit()
            return link
        finally:
            session.close()

    return _make


@pytest.fixture
def coach(make_user):
    return make_user(UserRole.COACH, name="Cora Coach", email="cora@example.com")


@pytest.fixture
def other_coach(make_user):
    return make_user(UserRole.COACH, name="Otto Coach", email="otto@example.com")


@pytest.fixture
def athlete(make_user):
    return make_user(UserRole.ATHLETE, name="Alice Runner", email="alice@example.com", height=168.0, weight=57.5)


@pytest.fixture
def other_athlete(make_user):
    return make_user(UserRole.ATHLETE, name="Bob Rower", email="bob@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Ada Admin", email="ada@example.com")


def _token_for(user, expires_delta=None) -> str:
    return create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role.value},
        expires_delta=expires_delta,
    )


@pytest.fixture
def auth_headers():
    """Bearer headers for a user, optionally with a custom token lifetime."""

    def _headers(user, expires_delta: timedelta = None):
        return {"Authorization": f"Bearer {_token_for(user, expires_delta)}"}

    return _headers


@pytest.fixture
def protocol_payload():
    return {
        "name": "Treadmill lactate step test",
        "description": "5 x 4 min, +1 km/h per stage",
        "testType": "TREADMILL",
        "stages": [
            {"duration": 4, "intensity": 60, "targetHeartRate": 140, "targetLactate": 1.5},
            {"duration": 4, "intensity": 70, "targetHeartRate": 155, "notes": "steady"},
            {"duration": 4, "intensity": 80},
        ],
    }


@pytest.fixture
def create_protocol(client, auth_headers, protocol_payload):
    """Factory: create a protocol through the API as the given user."""

    def _create(user, **overrides):
        payload = {**protocol_payload, **overrides}
        resp = client.post("/api/protocols", json=payload, headers=auth_headers(user))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_schedule(client, auth_headers):
    """Factory: create a schedule through the API as the given coach."""

    def _create(user, **overrides):
        payload = {
            "startTime": "2026-03-02T09:00:00",
            "endTime": "2026-03-02T10:00:00",
            "title": "Lactate test block",
            "location": "Lab 1",
            "type": "TEST_SESSION",
            **overrides,
        }
        resp = client.post("/api/schedules", json=payload, headers=auth_headers(user))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_session(client, auth_headers):
    """Factory: record a test session through the API as the given coach."""

    def _create(user, athlete, protocol_id, **overrides):
        payload = {
            "date": "2026-03-02T09:00:00",
            "protocolId": protocol_id,
            "athleteId": str(athlete.id),
            **overrides,
        }
        resp = client.post("/api/test-sessions", json=payload, headers=auth_headers(user))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
