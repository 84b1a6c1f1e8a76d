from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from meeting_planner.config import settings
from meeting_planner.logic.date_propagation import dependency_edges, would_create_cycle
from meeting_planner.logic.errors import TaskGraphError, TemplateValidationError
from meeting_planner.logic.instantiation import TemplateDefinition, creation_order, validate_template
from meeting_planner.logic.milestones import milestone_rank
from meeting_planner.logic.task_tree import (
    build_task_tree,
    descendant_ids,
    find_level_drift,
    resolve_milestone_ids,
)
from meeting_planner.models.projects import (
    MeetingType,
    ProjectTemplate,
    ProjectTemplateTask,
    TemplateMilestone,
)
from meeting_planner.schemas.projects import (
    MilestoneReorder,
    ProjectTemplateCreate,
    ProjectTemplateTaskCreate,
    ProjectTemplateTaskUpdate,
    ProjectTemplateUpdate,
    TemplateMilestoneCreate,
    TemplateMilestoneUpdate,
)
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

GRAPH_FIELDS = ("parent_task_id", "milestone_id", "depends_on_task_id", "days_from_meeting")


@dataclass
class _TaskDraft:
    id: Any
    parent_task_id: Any
    milestone_id: Any
    depends_on_task_id: Any
    sort_order: int


def _draft(task: ProjectTemplateTask) -> _TaskDraft:
    return _TaskDraft(
        id=task.id,
        parent_task_id=task.parent_task_id,
        milestone_id=task.milestone_id,
        depends_on_task_id=task.depends_on_task_id,
        sort_order=task.sort_order or 0,
    )


def _role_values(roles) -> list[str]:
    return [getattr(role, "value", role) for role in roles or []]


def _ensure_meeting_type_free(db: Session, meeting_type, template_id=None) -> None:
    if meeting_type is None:
        return
    query = db.query(ProjectTemplate).filter(ProjectTemplate.meeting_type == meeting_type)
    if template_id is not None:
        query = query.filter(ProjectTemplate.id != template_id)
    if query.first():
        raise HTTPException(status_code=400, detail="A template already exists for this meeting type")


def _template_tasks(db: Session, template_id) -> list[ProjectTemplateTask]:
    return (
        db.query(ProjectTemplateTask)
        .filter(ProjectTemplateTask.template_id == template_id)
        .filter(ProjectTemplateTask.is_active.is_(True))
        .all()
    )


def _template_milestones(db: Session, template_id) -> list[TemplateMilestone]:
    return (
        db.query(TemplateMilestone)
        .filter(TemplateMilestone.template_id == template_id)
        .order_by(TemplateMilestone.sort_order.asc(), TemplateMilestone.created_at.asc())
        .all()
    )


def _validate_task_graph(db: Session, template_id, task_id, values: dict) -> int:
    """Check a proposed task against its template and return its level."""
    tasks = _template_tasks(db, template_id)
    by_id = {task.id: task for task in tasks}
    parent_id = values.get("parent_task_id")
    milestone_id = values.get("milestone_id")
    depends_on_id = values.get("depends_on_task_id")

    if milestone_id is not None:
        milestone = db.get(TemplateMilestone, milestone_id)
        if not milestone or milestone.template_id != template_id:
            raise HTTPException(status_code=400, detail="Milestone does not belong to this template")

    if parent_id is not None:
        if parent_id == task_id:
            raise HTTPException(status_code=400, detail="Task cannot be its own parent")
        if parent_id not in by_id:
            raise HTTPException(status_code=400, detail="Parent task not found in this template")
        if task_id is not None and parent_id in descendant_ids(tasks, task_id):
            raise HTTPException(status_code=400, detail="Parent task cannot be a descendant of this task")
    elif milestone_id is None:
        raise HTTPException(status_code=400, detail="Root tasks must belong to a milestone")

    if depends_on_id is not None:
        if depends_on_id == task_id:
            raise HTTPException(status_code=400, detail="Task cannot depend on itself")
        if depends_on_id not in by_id:
            raise HTTPException(status_code=400, detail="Dependency task not found in this template")

    drafts = [task for task in tasks if task.id != task_id]
    candidate = _TaskDraft(
        id=task_id,
        parent_task_id=parent_id,
        milestone_id=milestone_id,
        depends_on_task_id=depends_on_id,
        sort_order=values.get("sort_order") or 0,
    )
    if parent_id is not None and milestone_id is not None:
        owners = resolve_milestone_ids([*drafts, candidate])
        if owners[task_id] != milestone_id:
            raise HTTPException(status_code=400, detail="Child task must stay in its parent's milestone")

    if depends_on_id is not None and would_create_cycle(dependency_edges(drafts), task_id, depends_on_id):
        raise HTTPException(status_code=400, detail="Dependency would create a cycle")
    if parent_id is not None or depends_on_id is not None:
        try:
            creation_order([*(_draft(task) for task in drafts), candidate])
        except TemplateValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail="Parent and dependency links leave no valid creation order",
            ) from exc

    if parent_id is None:
        return 0
    return (by_id[parent_id].level or 0) + 1


def _sync_levels(db: Session, template_id) -> None:
    tasks = _template_tasks(db, template_id)
    drift = find_level_drift(build_task_tree(tasks))
    for task in tasks:
        if task.id in drift:
            task.level = drift[task.id]


def _deactivate_subtree(db: Session, task: ProjectTemplateTask) -> None:
    """Deactivate a task with its subtree.

    Tasks elsewhere that depended on a removed task lose that dependency
    and become date-less until they are rescheduled.
    """
    tasks = _template_tasks(db, task.template_id)
    removed = {task.id, *descendant_ids(tasks, task.id)}
    detached = 0
    for item in tasks:
        if item.id in removed:
            item.is_active = False
        elif item.depends_on_task_id in removed:
            item.depends_on_task_id = None
            detached += 1
    task.is_active = False
    logger.info(
        "project_template_task_deactivated task_id=%s removed=%s detached_dependents=%s",
        task.id,
        len(removed),
        detached,
    )


class ProjectTemplates(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ProjectTemplateCreate):
        _ensure_meeting_type_free(db, payload.meeting_type)
        template = ProjectTemplate(**payload.model_dump())
        db.add(template)
        db.commit()
        db.refresh(template)
        logger.info("project_template_created template_id=%s meeting_type=%s", template.id, template.meeting_type)
        return template

    @staticmethod
    def get(db: Session, template_id: str):
        return get_or_404(db, ProjectTemplate, template_id, "Project template")

    @staticmethod
    def get_by_meeting_type(db: Session, meeting_type: str):
        value = validate_enum(meeting_type, MeetingType, "meeting_type")
        template = (
            db.query(ProjectTemplate)
            .filter(ProjectTemplate.meeting_type == value)
            .filter(ProjectTemplate.is_active.is_(True))
            .first()
        )
        if not template:
            raise HTTPException(status_code=404, detail="Project template not found")
        return template

    @staticmethod
    def list(
        db: Session,
        meeting_type: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(ProjectTemplate)
        if meeting_type:
            query = query.filter(
                ProjectTemplate.meeting_type == validate_enum(meeting_type, MeetingType, "meeting_type")
            )
        query = apply_is_active_filter(query, ProjectTemplate, is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": ProjectTemplate.created_at,
                "name": ProjectTemplate.name,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, template_id: str, payload: ProjectTemplateUpdate):
        template = get_or_404(db, ProjectTemplate, template_id, "Project template")
        data = payload.model_dump(exclude_unset=True)
        if data.get("meeting_type") is not None:
            _ensure_meeting_type_free(db, data["meeting_type"], template.id)
        for key, value in data.items():
            setattr(template, key, value)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def delete(db: Session, template_id: str):
        template = get_or_404(db, ProjectTemplate, template_id, "Project template")
        template.is_active = False
        db.commit()
        logger.info("project_template_deactivated template_id=%s", template.id)

    @staticmethod
    def copy(db: Session, template_id: str, name: str | None = None):
        """Duplicate a template with fresh ids for every milestone and task.

        The copy has no meeting type, so it never competes with the source
        for meeting-type lookups until one is assigned.
        """
        source = get_or_404(db, ProjectTemplate, template_id, "Project template")
        clone = ProjectTemplate(
            id=uuid.uuid4(),
            name=name or f"{source.name}{settings.template_copy_suffix}",
            description=source.description,
            meeting_type=None,
            is_active=True,
        )
        db.add(clone)

        milestone_map = {}
        milestones = _template_milestones(db, source.id)
        for milestone in milestones:
            copied = TemplateMilestone(
                id=uuid.uuid4(),
                template=clone,
                title=milestone.title,
                description=milestone.description,
                sort_order=milestone.sort_order,
            )
            milestone_map[milestone.id] = copied
            db.add(copied)

        tasks = _template_tasks(db, source.id)
        try:
            ordered = creation_order(tasks, milestones)
        except TemplateValidationError as exc:
            db.rollback()
            raise exc.to_http_exception() from exc

        task_map: dict = {}
        for task in ordered:
            copied = ProjectTemplateTask(
                id=uuid.uuid4(),
                template=clone,
                milestone=milestone_map.get(task.milestone_id),
                parent_task=task_map.get(task.parent_task_id),
                depends_on_task=task_map.get(task.depends_on_task_id),
                title=task.title,
                description=task.description,
                priority=task.priority,
                level=task.level,
                sort_order=task.sort_order,
                days_from_meeting=task.days_from_meeting,
                dependency_anchor=task.dependency_anchor,
                dependency_lag_days=task.dependency_lag_days,
                assigned_roles=list(task.assigned_roles or []),
                is_active=True,
            )
            task_map[task.id] = copied
            db.add(copied)
        db.commit()
        db.refresh(clone)
        logger.info(
            "project_template_copied source_id=%s template_id=%s milestones=%s tasks=%s",
            source.id,
            clone.id,
            len(milestone_map),
            len(task_map),
        )
        return clone

    @staticmethod
    def task_tree(db: Session, template_id: str):
        template = get_or_404(db, ProjectTemplate, template_id, "Project template")
        return build_task_tree(
            _template_tasks(db, template.id),
            milestone_rank(_template_milestones(db, template.id)),
        )

    @staticmethod
    def validate(db: Session, template_id: str) -> list[TaskGraphError]:
        template = (
            db.query(ProjectTemplate)
            .options(selectinload(ProjectTemplate.milestones), selectinload(ProjectTemplate.tasks))
            .filter(ProjectTemplate.id == coerce_uuid(template_id))
            .first()
        )
        if not template:
            raise HTTPException(status_code=404, detail="Project template not found")
        definition = TemplateDefinition.from_template(template)
        errors = validate_template(definition)
        if not errors:
            try:
                creation_order(definition.tasks, definition.milestones)
            except TemplateValidationError as exc:
                errors.extend(exc.errors)
        if errors:
            logger.warning("project_template_invalid template_id=%s errors=%s", template.id, len(errors))
        return errors


class TemplateMilestones(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: TemplateMilestoneCreate):
        template = get_or_404(db, ProjectTemplate, payload.template_id, "Project template")
        data = payload.model_dump()
        if data.get("sort_order") is None:
            current = (
                db.query(func.max(TemplateMilestone.sort_order))
                .filter(TemplateMilestone.template_id == template.id)
                .scalar()
            )
            data["sort_order"] = 0 if current is None else current + 1
        milestone = TemplateMilestone(**data)
        db.add(milestone)
        db.commit()
        db.refresh(milestone)
        return milestone

    @staticmethod
    def get(db: Session, milestone_id: str):
        return get_or_404(db, TemplateMilestone, milestone_id, "Template milestone")

    @staticmethod
    def list(db: Session, template_id: str, limit: int = 100, offset: int = 0):
        template = get_or_404(db, ProjectTemplate, template_id, "Project template")
        query = (
            db.query(TemplateMilestone)
            .filter(TemplateMilestone.template_id == template.id)
            .order_by(TemplateMilestone.sort_order.asc(), TemplateMilestone.created_at.asc())
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, milestone_id: str, payload: TemplateMilestoneUpdate):
        milestone = get_or_404(db, TemplateMilestone, milestone_id, "Template milestone")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(milestone, key, value)
        db.commit()
        db.refresh(milestone)
        return milestone

    @staticmethod
    def delete(db: Session, milestone_id: str):
        milestone = get_or_404(db, TemplateMilestone, milestone_id, "Template milestone")
        in_use = (
            db.query(ProjectTemplateTask.id)
            .filter(ProjectTemplateTask.milestone_id == milestone.id)
            .filter(ProjectTemplateTask.is_active.is_(True))
            .first()
        )
        if in_use:
            raise HTTPException(status_code=400, detail="Milestone still has tasks")
        db.delete(milestone)
        db.commit()

    @staticmethod
    def reorder(db: Session, template_id: str, payload: MilestoneReorder):
        template = get_or_404(db, ProjectTemplate, template_id, "Project template")
        milestones = _template_milestones(db, template.id)
        wanted = list(payload.milestone_ids)
        if len(set(wanted)) != len(wanted) or set(wanted) != {milestone.id for milestone in milestones}:
            raise HTTPException(status_code=400, detail="Reorder must list every milestone of the template once")
        by_id = {milestone.id: milestone for milestone in milestones}
        for index, milestone_id in enumerate(wanted):
            by_id[milestone_id].sort_order = index
        db.commit()
        return [by_id[milestone_id] for milestone_id in wanted]


class ProjectTemplateTasks(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ProjectTemplateTaskCreate):
        template = get_or_404(db, ProjectTemplate, payload.template_id, "Project template")
        data = payload.model_dump()
        data["assigned_roles"] = _role_values(data.get("assigned_roles"))
        task_id = uuid.uuid4()
        data["level"] = _validate_task_graph(db, template.id, task_id, data)
        task = ProjectTemplateTask(id=task_id, **data)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def get(db: Session, task_id: str):
        return get_or_404(db, ProjectTemplateTask, task_id, "Project template task")

    @staticmethod
    def list(
        db: Session,
        template_id: str | None,
        milestone_id: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(ProjectTemplateTask)
        if template_id:
            query = query.filter(ProjectTemplateTask.template_id == coerce_uuid(template_id))
        if milestone_id:
            query = query.filter(ProjectTemplateTask.milestone_id == coerce_uuid(milestone_id))
        query = apply_is_active_filter(query, ProjectTemplateTask, is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": ProjectTemplateTask.created_at,
                "sort_order": ProjectTemplateTask.sort_order,
                "days_from_meeting": ProjectTemplateTask.days_from_meeting,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, task_id: str, payload: ProjectTemplateTaskUpdate):
        task = get_or_404(db, ProjectTemplateTask, task_id, "Project template task")
        data = payload.model_dump(exclude_unset=True)
        if "assigned_roles" in data:
            data["assigned_roles"] = _role_values(data["assigned_roles"])
        if data.get("is_active") is False:
            data.pop("is_active")
            # Scheduling and links of a removed task stay as they were
            for key, value in data.items():
                if key not in GRAPH_FIELDS:
                    setattr(task, key, value)
            _deactivate_subtree(db, task)
            db.commit()
            db.refresh(task)
            return task
        # Switching schedule kind clears the other rule
        if data.get("days_from_meeting") is not None:
            data.setdefault("depends_on_task_id", None)
        if data.get("depends_on_task_id") is not None:
            data.setdefault("days_from_meeting", None)

        proposed = {
            "parent_task_id": data.get("parent_task_id", task.parent_task_id),
            "milestone_id": data.get("milestone_id", task.milestone_id),
            "depends_on_task_id": data.get("depends_on_task_id", task.depends_on_task_id),
            "sort_order": data.get("sort_order", task.sort_order),
        }
        moved = "parent_task_id" in data and data["parent_task_id"] != task.parent_task_id
        if moved and proposed["parent_task_id"] is not None and "milestone_id" not in data:
            proposed["milestone_id"] = None
            data["milestone_id"] = None
        data["level"] = _validate_task_graph(db, task.template_id, task.id, proposed)

        for key, value in data.items():
            setattr(task, key, value)
        db.flush()
        if moved or "milestone_id" in data:
            # Descendants follow their root's milestone
            tasks = _template_tasks(db, task.template_id)
            below = descendant_ids(tasks, task.id)
            for item in tasks:
                if item.id in below:
                    item.milestone_id = None
        _sync_levels(db, task.template_id)
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def delete(db: Session, task_id: str):
        task = get_or_404(db, ProjectTemplateTask, task_id, "Project template task")
        _deactivate_subtree(db, task)
        db.commit()


project_templates = ProjectTemplates()
template_milestones = TemplateMilestones()
project_template_tasks = ProjectTemplateTasks()
