import pytest

from meeting_planner.logic.role_resolution import RosterMember, normalize_roles, resolve_roles
from meeting_planner.models.person import TeamRole


def _member(person_id, *roles, is_active=True):
    return RosterMember(person_id=person_id, roles=frozenset(roles), is_active=is_active)


def test_person_holding_two_roles_is_assigned_once():
    roster = [_member("p1", TeamRole.estate_attorney, TeamRole.tax_planner)]
    resolution = resolve_roles(["estate_attorney", "tax_planner"], roster)

    assert resolution.person_ids == ("p1",)
    assert resolution.unresolved_roles == ()


def test_every_holder_of_a_role_is_assigned():
    roster = [
        _member("p1", TeamRole.admin_assistant),
        _member("p2", TeamRole.financial_planner),
        _member("p3", TeamRole.admin_assistant),
    ]
    resolution = resolve_roles([TeamRole.admin_assistant], roster)

    assert resolution.person_ids == ("p1", "p3")


def test_union_follows_role_order_then_roster_order():
    roster = [
        _member("p1", TeamRole.tax_planner),
        _member("p2", TeamRole.estate_attorney),
    ]
    resolution = resolve_roles([TeamRole.estate_attorney, TeamRole.tax_planner], roster)

    assert resolution.person_ids == ("p2", "p1")


def test_role_with_no_holder_is_unresolved():
    roster = [_member("p1", TeamRole.tax_planner)]
    resolution = resolve_roles([TeamRole.tax_planner, TeamRole.money_manager], roster)

    assert resolution.person_ids == ("p1",)
    assert resolution.unresolved_roles == (TeamRole.money_manager,)
    assert not resolution.is_unassigned


def test_inactive_people_are_skipped():
    roster = [_member("p1", TeamRole.tax_planner, is_active=False)]
    resolution = resolve_roles([TeamRole.tax_planner], roster)

    assert resolution.is_unassigned
    assert resolution.unresolved_roles == (TeamRole.tax_planner,)


def test_no_roles_means_no_assignees_and_nothing_unresolved():
    resolution = resolve_roles([], [_member("p1", TeamRole.other)])

    assert resolution.person_ids == ()
    assert resolution.unresolved_roles == ()


def test_normalize_roles_drops_blanks_and_duplicates():
    assert normalize_roles(["tax_planner", "", None, "none", TeamRole.tax_planner, "accountant"]) == (
        TeamRole.tax_planner,
        TeamRole.accountant,
    )


def test_normalize_roles_rejects_unknown_tags():
    with pytest.raises(ValueError):
        normalize_roles(["astronaut"])
