import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from meeting_planner.logic.role_resolution import RosterMember, normalize_roles
from meeting_planner.models.person import Person, PersonRole, TeamRole
from meeting_planner.schemas.person import PersonCreate, PersonUpdate
from meeting_planner.services.common import (
    apply_is_active_filter,
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    validate_enum,
)
from meeting_planner.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _role_list(roles) -> list[TeamRole]:
    try:
        return list(normalize_roles(roles))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid role") from exc


def roster_snapshot(db: Session) -> tuple[RosterMember, ...]:
    """Active people and their role tags, read once per instantiation."""
    people = (
        db.query(Person)
        .options(selectinload(Person.roles))
        .filter(Person.is_active.is_(True))
        .order_by(Person.created_at.asc(), Person.id.asc())
        .all()
    )
    return tuple(
        RosterMember(
            person_id=person.id,
            roles=frozenset(person.role_tags),
            is_active=person.is_active,
            display_name=person.label,
        )
        for person in people
    )


class People(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: PersonCreate):
        data = payload.model_dump(exclude={"roles"})
        data["email"] = _normalize_email(data["email"])
        if db.query(Person).filter(Person.email == data["email"]).first():
            raise HTTPException(status_code=400, detail="Email already exists")
        person = Person(**data)
        for role in _role_list(payload.roles):
            person.roles.append(PersonRole(role=role))
        db.add(person)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(status_code=400, detail="Email already exists") from exc
        db.refresh(person)
        logger.info("person_created person_id=%s roles=%s", person.id, [role.value for role in person.role_tags])
        return person

    @staticmethod
    def get(db: Session, person_id: str):
        return get_or_404(db, Person, person_id, "Person")

    @staticmethod
    def list(
        db: Session,
        role: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Person).options(selectinload(Person.roles))
        if role:
            role_value = validate_enum(role, TeamRole, "role")
            query = query.filter(Person.roles.any(PersonRole.role == role_value))
        query = apply_is_active_filter(query, Person, is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Person.created_at,
                "last_name": Person.last_name,
                "email": Person.email,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, person_id: str, payload: PersonUpdate):
        person = get_or_404(db, Person, person_id, "Person")
        data = payload.model_dump(exclude_unset=True)
        if data.get("email"):
            data["email"] = _normalize_email(data["email"])
            duplicate = (
                db.query(Person)
                .filter(Person.email == data["email"], Person.id != person.id)
                .first()
            )
            if duplicate:
                raise HTTPException(status_code=400, detail="Email already exists")
        for key, value in data.items():
            setattr(person, key, value)
        db.commit()
        db.refresh(person)
        return person

    @staticmethod
    def set_roles(db: Session, person_id: str, roles: list):
        """Replace a person's role tags.

        Tasks already instantiated keep the assignees they were created with;
        only later instantiations and explicit role resolution see the change.
        """
        person = get_or_404(db, Person, person_id, "Person")
        wanted = _role_list(roles)
        person.roles = [item for item in person.roles if item.role in wanted]
        existing = {item.role for item in person.roles}
        for role in wanted:
            if role not in existing:
                person.roles.append(PersonRole(role=role))
        db.commit()
        db.refresh(person)
        logger.info("person_roles_updated person_id=%s roles=%s", person.id, [role.value for role in wanted])
        return person

    @staticmethod
    def delete(db: Session, person_id: str):
        person = get_or_404(db, Person, person_id, "Person")
        person.is_active = False
        db.commit()
        logger.info("person_deactivated person_id=%s", coerce_uuid(person_id))


people = People()
