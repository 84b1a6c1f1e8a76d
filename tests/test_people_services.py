"""Tests for the people roster service."""

import pytest
from fastapi import HTTPException

from meeting_planner.models.person import TeamRole
from meeting_planner.schemas.person import PersonCreate, PersonUpdate
from meeting_planner.services import people as people_service


class TestPeople:
    """Tests for People."""

    def test_create_with_roles(self, db_session):
        person = people_service.people.create(
            db_session,
            PersonCreate(
                first_name="Dana",
                last_name="Reyes",
                email="Dana.Reyes@Example.com",
                roles=[TeamRole.tax_planner, TeamRole.estate_attorney],
            ),
        )
        assert person.email == "dana.reyes@example.com"
        assert set(person.role_tags) == {TeamRole.tax_planner, TeamRole.estate_attorney}
        assert person.label == "Dana Reyes"

    def test_duplicate_email_rejected(self, db_session, person):
        with pytest.raises(HTTPException) as exc_info:
            people_service.people.create(
                db_session,
                PersonCreate(first_name="Other", last_name="User", email=person.email),
            )
        assert exc_info.value.status_code == 400

    def test_set_roles_replaces_tags(self, db_session, make_person):
        person = make_person(TeamRole.accountant, TeamRole.tax_planner)
        updated = people_service.people.set_roles(db_session, str(person.id), ["tax_planner", "money_manager"])
        assert set(updated.role_tags) == {TeamRole.tax_planner, TeamRole.money_manager}

    def test_set_roles_rejects_unknown_tag(self, db_session, person):
        with pytest.raises(HTTPException) as exc_info:
            people_service.people.set_roles(db_session, str(person.id), ["astronaut"])
        assert exc_info.value.status_code == 400

    def test_list_filters_by_role(self, db_session, make_person):
        planner = make_person(TeamRole.financial_planner)
        make_person(TeamRole.admin_assistant)
        items = people_service.people.list(db_session, "financial_planner", None, "created_at", "asc", 10, 0)
        assert [item.id for item in items] == [planner.id]

    def test_update(self, db_session, person):
        updated = people_service.people.update(db_session, str(person.id), PersonUpdate(display_name="T. User"))
        assert updated.label == "T. User"

    def test_delete_is_soft(self, db_session, person):
        people_service.people.delete(db_session, str(person.id))
        db_session.refresh(person)
        assert person.is_active is False


class TestRosterSnapshot:
    """Tests for roster_snapshot."""

    def test_snapshot_contains_active_people_with_roles(self, db_session, make_person):
        attorney = make_person(TeamRole.estate_attorney, TeamRole.tax_planner)
        make_person(TeamRole.admin_assistant, is_active=False)
        roster = people_service.roster_snapshot(db_session)

        assert [member.person_id for member in roster] == [attorney.id]
        assert roster[0].roles == frozenset({TeamRole.estate_attorney, TeamRole.tax_planner})
