"""
Unit tests for the coach/athlete link workflow service.
"""
import pytest
from uuid import uuid4

from core.exceptions import ConflictError, NotFoundError
from models import CoachAthleteLink, LinkStatus, UserRole
from schemas import AthleteCreate
from services import coach_links


class TestRequestLink:
    def test_creates_pending_link(self, db, coach, athlete):
        link = coach_links.request_link(db, coach_id=coach.id, athlete_id=athlete.id)

        assert link.status == LinkStatus.PENDING
        assert link.coach_id == coach.id
        assert link.athlete_id == athlete.id
        assert not coach_links.coach_manages_athlete(db, coach_id=coach.id, athlete_id=athlete.id)

    def test_existing_link_conflicts(self, db, coach, athlete, make_link):
        make_link(coach, athlete, LinkStatus.PENDING)
        with pytest.raises(ConflictError):
            coach_links.request_link(db, coach_id=coach.id, athlete_id=athlete.id)

    def test_concurrent_insert_maps_to_conflict(self, db, coach, athlete, make_link, monkeypatch):
        """A request that passes the lookup but loses the insert race still answers Conflict."""
        make_link(coach, athlete, LinkStatus.PENDING)
        monkeypatch.setattr(coach_links, "get_link", lambda *args, **kwargs: None)

        with pytest.raises(ConflictError) as exc_info:
            coach_links.request_link(db, coach_id=coach.id, athlete_id=athlete.id)
        assert exc_info.value.detail == "Request already exists"
        assert db.query(CoachAthleteLink).count() == 1

    def test_unknown_athlete(self, db, coach):
        with pytest.raises(NotFoundError):
            coach_links.request_link(db, coach_id=coach.id, athlete_id=uuid4())


class TestAcceptLink:
    def test_accept_moves_to_accepted(self, db, coach, athlete, make_link):
        link = make_link(coach, athlete, LinkStatus.PENDING)

        accepted = coach_links.accept_link(db, athlete_id=athlete.id, link_id=link.id)
        assert accepted.status == LinkStatus.ACCEPTED
        assert coach_links.coach_manages_athlete(db, coach_id=coach.id, athlete_id=athlete.id)

    def test_wrong_athlete_is_not_found(self, db, coach, athlete, other_athlete, make_link):
        link = make_link(coach, athlete, LinkStatus.PENDING)
        with pytest.raises(NotFoundError):
            coach_links.accept_link(db, athlete_id=other_athlete.id, link_id=link.id)

    def test_reaccept_idempotent(self, db, coach, athlete, make_link):
        link = make_link(coach, athlete, LinkStatus.ACCEPTED)
        result = coach_links.accept_link(
            db, athlete_id=athlete.id, link_id=link.id, reaccept_policy=coach_links.REACCEPT_IDEMPOTENT
        )
        assert result.status == LinkStatus.ACCEPTED

    def test_reaccept_rejected_by_policy(self, db, coach, athlete, make_link):
        link = make_link(coach, athlete, LinkStatus.ACCEPTED)
        with pytest.raises(ConflictError) as exc_info:
            coach_links.accept_link(
                db, athlete_id=athlete.id, link_id=link.id, reaccept_policy=coach_links.REACCEPT_REJECT
            )
        assert exc_info.value.detail == "Request already accepted"

    def test_policy_defaults_to_settings(self, db, coach, athlete, make_link, monkeypatch):
        monkeypatch.setattr(coach_links.settings, "LINK_REACCEPT_POLICY", coach_links.REACCEPT_REJECT)
        link = make_link(coach, athlete, LinkStatus.ACCEPTED)
        with pytest.raises(ConflictError):
            coach_links.accept_link(db, athlete_id=athlete.id, link_id=link.id)


class TestListing:
    def test_list_for_coach_partitions_by_status(self, db, coach, athlete, other_athlete, make_link):
        make_link(coach, athlete, LinkStatus.ACCEPTED)
        make_link(coach, other_athlete, LinkStatus.PENDING)

        grouped = coach_links.list_for_coach(db, coach_id=coach.id)
        assert [a.id for a in grouped["accepted"]] == [athlete.id]
        assert [a.id for a in grouped["pending"]] == [other_athlete.id]

    def test_pending_for_athlete_skips_accepted(self, db, coach, other_coach, athlete, make_link):
        make_link(coach, athlete, LinkStatus.ACCEPTED)
        pending = make_link(other_coach, athlete, LinkStatus.PENDING)

        links = coach_links.list_pending_for_athlete(db, athlete_id=athlete.id)
        assert [link.id for link in links] == [pending.id]
        assert links[0].coach.email == other_coach.email

    def test_linked_athlete_ids_any_status(self, db, coach, athlete, other_athlete, make_link):
        make_link(coach, athlete, LinkStatus.ACCEPTED)
        make_link(coach, other_athlete, LinkStatus.PENDING)

        assert set(coach_links.linked_athlete_ids(db, coach_id=coach.id)) == {athlete.id, other_athlete.id}


class TestCreateAthleteAsCoach:
    PROFILE = AthleteCreate(name="Dan Biker", email="dan@example.com", password="Cadence-Drill-90")

    def test_coach_creator_gets_accepted_link(self, db, coach):
        created = coach_links.create_athlete_as_coach(
            db, creator_id=coach.id, creator_role=UserRole.COACH, profile=self.PROFILE
        )
        assert created.role == UserRole.ATHLETE
        assert coach_links.coach_manages_athlete(db, coach_id=coach.id, athlete_id=created.id)

    def test_admin_creator_gets_no_link(self, db, admin):
        created = coach_links.create_athlete_as_coach(
            db, creator_id=admin.id, creator_role=UserRole.ADMIN, profile=self.PROFILE
        )
        assert db.query(CoachAthleteLink).filter(CoachAthleteLink.athlete_id == created.id).count() == 0

    def test_duplicate_email_conflicts(self, db, coach, make_user):
        make_user(UserRole.ATHLETE, email="dan@example.com")
        with pytest.raises(ConflictError):
            coach_links.create_athlete_as_coach(
                db, creator_id=coach.id, creator_role=UserRole.COACH, profile=self.PROFILE
            )
