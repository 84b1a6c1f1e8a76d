import uuid
from enum import Enum

from fastapi import HTTPException
from sqlalchemy.orm import Query, Session


def coerce_uuid(value):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid id: {value}") from exc


def validate_enum(value, enum_cls: type[Enum], label: str):
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {label}") from exc


def apply_ordering(query: Query, order_by: str, order_dir: str, allowed_columns: dict) -> Query:
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query: Query, limit: int, offset: int) -> Query:
    return query.limit(limit).offset(offset)


def apply_is_active_filter(query: Query, model, is_active: bool | None) -> Query:
    if is_active is None:
        return query.filter(model.is_active.is_(True))
    return query.filter(model.is_active == is_active)


def get_or_404(db: Session, model, record_id, label: str | None = None):
    record = db.get(model, coerce_uuid(record_id))
    if not record:
        name = label or model.__name__
        raise HTTPException(status_code=404, detail=f"{name} not found")
    return record
