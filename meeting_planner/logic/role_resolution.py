from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from meeting_planner.models.person import TeamRole


@dataclass(frozen=True)
class RosterMember:
    person_id: Any
    roles: frozenset[TeamRole] = field(default_factory=frozenset)
    is_active: bool = True
    display_name: str | None = None


@dataclass(frozen=True)
class RoleResolution:
    person_ids: tuple = ()
    unresolved_roles: tuple[TeamRole, ...] = ()

    @property
    def is_unassigned(self) -> bool:
        return not self.person_ids


def normalize_roles(role_tags: Iterable | None) -> tuple[TeamRole, ...]:
    """Coerce role tags to ``TeamRole``; drop blanks and repeats, keep order."""
    if not role_tags:
        return ()
    roles: list[TeamRole] = []
    for tag in role_tags:
        if tag is None or tag == "" or tag == "none":
            continue
        role = tag if isinstance(tag, TeamRole) else TeamRole(str(tag).strip())
        if role not in roles:
            roles.append(role)
    return tuple(roles)


def resolve_roles(role_tags: Iterable | None, roster: Iterable[RosterMember]) -> RoleResolution:
    members = [member for member in roster if member.is_active]
    person_ids: list = []
    unresolved: list[TeamRole] = []
    for role in normalize_roles(role_tags):
        matches = [member.person_id for member in members if role in member.roles]
        if not matches:
            unresolved.append(role)
            continue
        for person_id in matches:
            if person_id not in person_ids:
                person_ids.append(person_id)
    return RoleResolution(person_ids=tuple(person_ids), unresolved_roles=tuple(unresolved))
