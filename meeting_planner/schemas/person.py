from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from meeting_planner.models.person import TeamRole


class PersonBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(min_length=1, max_length=80)
    display_name: str | None = Field(default=None, max_length=160)
    email: str = Field(min_length=3, max_length=255)
    is_active: bool = True


class PersonCreate(PersonBase):
    roles: list[TeamRole] = Field(default_factory=list)


class PersonUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=80)
    last_name: str | None = Field(default=None, min_length=1, max_length=80)
    display_name: str | None = Field(default=None, max_length=160)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    is_active: bool | None = None


class PersonRead(PersonBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    role_tags: list[TeamRole] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
