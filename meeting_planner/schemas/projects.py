from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from meeting_planner.models.person import TeamRole
from meeting_planner.models.projects import (
    DependencyAnchor,
    MeetingType,
    ProjectStatus,
    TaskPriority,
    TaskStatus,
)


def _dedupe_roles(value: list[TeamRole] | None) -> list[TeamRole] | None:
    if value is None:
        return None
    roles: list[TeamRole] = []
    for role in value:
        if role not in roles:
            roles.append(role)
    return roles


class ProjectTemplateBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(min_length=1, max_length=160)
    meeting_type: MeetingType | None = None
    description: str | None = None
    is_active: bool = True


class ProjectTemplateCreate(ProjectTemplateBase):
    pass


class ProjectTemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    meeting_type: MeetingType | None = None
    description: str | None = None
    is_active: bool | None = None


class ProjectTemplateRead(ProjectTemplateBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class TemplateMilestoneBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    template_id: UUID
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None


class TemplateMilestoneCreate(TemplateMilestoneBase):
    sort_order: int | None = None


class TemplateMilestoneUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    sort_order: int | None = None


class TemplateMilestoneRead(TemplateMilestoneBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    sort_order: int
    created_at: datetime


class MilestoneReorder(BaseModel):
    milestone_ids: list[UUID] = Field(min_length=1)


class ProjectTemplateTaskBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    template_id: UUID
    milestone_id: UUID | None = None
    parent_task_id: UUID | None = None
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    priority: TaskPriority = TaskPriority.medium
    sort_order: int = 0
    days_from_meeting: int | None = None
    depends_on_task_id: UUID | None = None
    dependency_anchor: DependencyAnchor = DependencyAnchor.due_date
    dependency_lag_days: int = 0
    assigned_roles: list[TeamRole] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("assigned_roles")
    @classmethod
    def _unique_roles(cls, value: list[TeamRole]) -> list[TeamRole]:
        return _dedupe_roles(value) or []

    @model_validator(mode="after")
    def _validate_schedule(self) -> ProjectTemplateTaskBase:
        if self.days_from_meeting is not None and self.depends_on_task_id is not None:
            raise ValueError("a task is scheduled either by days_from_meeting or by depends_on_task_id, not both")
        return self


class ProjectTemplateTaskCreate(ProjectTemplateTaskBase):
    pass


class ProjectTemplateTaskUpdate(BaseModel):
    milestone_id: UUID | None = None
    parent_task_id: UUID | None = None
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    priority: TaskPriority | None = None
    sort_order: int | None = None
    days_from_meeting: int | None = None
    depends_on_task_id: UUID | None = None
    dependency_anchor: DependencyAnchor | None = None
    dependency_lag_days: int | None = None
    assigned_roles: list[TeamRole] | None = None
    is_active: bool | None = None

    @field_validator("assigned_roles")
    @classmethod
    def _unique_roles(cls, value: list[TeamRole] | None) -> list[TeamRole] | None:
        return _dedupe_roles(value)

    @model_validator(mode="after")
    def _validate_schedule(self) -> ProjectTemplateTaskUpdate:
        if self.days_from_meeting is not None and self.depends_on_task_id is not None:
            raise ValueError("a task is scheduled either by days_from_meeting or by depends_on_task_id, not both")
        return self


class ProjectTemplateTaskRead(ProjectTemplateTaskBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    level: int
    created_at: datetime
    updated_at: datetime


class ProjectFromTemplateCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(min_length=1, max_length=160)
    description: str | None = None
    template_id: UUID | None = None
    meeting_type: MeetingType | None = None
    reference_date: date = Field(alias="meeting_date")
    status: ProjectStatus | None = None

    @model_validator(mode="after")
    def _validate_template_selector(self) -> ProjectFromTemplateCreate:
        if self.template_id is None and self.meeting_type is None:
            raise ValueError("template_id or meeting_type is required")
        return self


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    description: str | None = None
    status: ProjectStatus | None = None
    is_active: bool | None = None


class ProjectReschedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    reference_date: date = Field(alias="meeting_date")


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    name: str
    description: str | None = None
    template_id: UUID | None = None
    meeting_type: MeetingType | None = None
    reference_date: date | None = None
    status: ProjectStatus
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProjectMilestoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    project_id: UUID
    template_milestone_id: UUID | None = None
    title: str
    description: str | None = None
    due_date: date | None = None
    sort_order: int
    progress: int = 0


class ProjectTaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    sort_order: int | None = None
    assigned_to_person_ids: list[UUID] | None = None
    days_from_meeting: int | None = None
    depends_on_task_id: UUID | None = None
    dependency_anchor: DependencyAnchor | None = None
    dependency_lag_days: int | None = None

    @model_validator(mode="after")
    def _validate_schedule(self) -> ProjectTaskUpdate:
        if self.days_from_meeting is not None and self.depends_on_task_id is not None:
            raise ValueError("a task is scheduled either by days_from_meeting or by depends_on_task_id, not both")
        return self


class ProjectTaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    project_id: UUID
    milestone_id: UUID | None = None
    parent_task_id: UUID | None = None
    template_task_id: UUID | None = None
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    level: int
    sort_order: int
    days_from_meeting: int | None = None
    depends_on_task_id: UUID | None = None
    dependency_anchor: DependencyAnchor
    dependency_lag_days: int
    assigned_to_person_ids: list[UUID] = Field(default_factory=list)
    unresolved_roles: list[TeamRole] | None = None
    due_date: date | None = None
    completed_at: datetime | None = None


class TaskTreeNodeRead(BaseModel):
    id: UUID
    title: str
    level: int
    sort_order: int
    due_date: date | None = None
    children: list[TaskTreeNodeRead] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node) -> TaskTreeNodeRead:
        return cls(
            id=node.task.id,
            title=node.task.title,
            level=node.level,
            sort_order=node.task.sort_order or 0,
            due_date=getattr(node.task, "due_date", None),
            children=[cls.from_node(child) for child in node.children],
        )
