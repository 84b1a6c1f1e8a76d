from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from meeting_planner.config import settings
from meeting_planner.logic.date_propagation import (
    apply_due_dates,
    dependency_edges,
    propagate_dates,
    would_create_cycle,
)
from meeting_planner.logic.dates import due_date_urgency, planner_zone, today
from meeting_planner.logic.errors import InstantiationFailure, UnresolvedRoleWarning
from meeting_planner.logic.instantiation import TemplateDefinition, plan_instantiation
from meeting_planner.logic.milestones import (
    MilestoneProgress,
    latest_due_dates,
    milestone_progress_map,
    milestone_rank,
)
from meeting_planner.logic.role_resolution import resolve_roles
from meeting_planner.logic.task_tree import build_task_tree
from meeting_planner.models.person import Person
from meeting_planner.models.projects import (
    MeetingType,
    Project,
    ProjectMilestone,
    ProjectStatus,
    ProjectTask,
    ProjectTaskAssignee,
    ProjectTemplate,
    TaskStatus,
)
from meeting_planner.schemas.projects import (
    ProjectFromTemplateCreate,
    ProjectReschedule,
    ProjectTaskUpdate,
    ProjectUpdate,
)
from meeting_planner.services.common import (
    apply_is_active_filter,
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    validate_enum,
)
from meeting_planner.services.people import roster_snapshot
from meeting_planner.services.project_templates import project_templates
from meeting_planner.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ("days_from_meeting", "depends_on_task_id", "dependency_anchor", "dependency_lag_days")


@dataclass
class ProjectInstantiation:
    project: Project
    warnings: list = field(default_factory=list)


@dataclass
class ScheduleUpdate:
    project: Project
    changed_task_ids: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)


@dataclass
class RoleRefresh:
    project: Project
    assigned_task_ids: list = field(default_factory=list)
    warnings: list = field(default_factory=list)


@dataclass
class MilestoneSummary:
    milestone: ProjectMilestone
    progress: MilestoneProgress

    @property
    def percent(self) -> int:
        return self.progress.percent


def _load_template(db: Session, payload: ProjectFromTemplateCreate) -> ProjectTemplate:
    if payload.template_id is not None:
        template = project_templates.get(db, payload.template_id)
        if not template.is_active:
            raise HTTPException(status_code=400, detail="Project template is inactive")
    else:
        template = project_templates.get_by_meeting_type(db, payload.meeting_type)
    return (
        db.query(ProjectTemplate)
        .options(selectinload(ProjectTemplate.milestones), selectinload(ProjectTemplate.tasks))
        .filter(ProjectTemplate.id == template.id)
        .populate_existing()
        .one()
    )


def _active_tasks(db: Session, project_id, lock: bool = False) -> list[ProjectTask]:
    query = (
        db.query(ProjectTask)
        .filter(ProjectTask.project_id == project_id)
        .filter(ProjectTask.is_active.is_(True))
        .order_by(ProjectTask.sort_order.asc(), ProjectTask.id.asc())
    )
    if lock:
        query = query.with_for_update()
    return query.all()


def _lock_project(db: Session, project_id) -> Project:
    project = (
        db.query(Project)
        .filter(Project.id == coerce_uuid(project_id))
        .with_for_update()
        .first()
    )
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _recompute(db: Session, project: Project, tasks: list[ProjectTask]) -> ScheduleUpdate:
    result = propagate_dates(tasks, project.reference_date, tz=planner_zone(settings.planner_timezone))
    changed = apply_due_dates(tasks, result)
    latest = latest_due_dates(tasks)
    for milestone in db.query(ProjectMilestone).filter(ProjectMilestone.project_id == project.id).all():
        milestone.due_date = latest.get(milestone.id)
    for warning in result.warnings:
        logger.warning(
            "project_task_undated project_id=%s task_id=%s reason=%s",
            project.id,
            warning.task_id,
            warning.reason,
        )
    return ScheduleUpdate(
        project=project,
        changed_task_ids=[task.id for task in changed],
        errors=list(result.errors),
        warnings=list(result.warnings),
    )


def _set_completion(task: ProjectTask, status: TaskStatus) -> None:
    task.status = status
    if status == TaskStatus.completed:
        if task.completed_at is None:
            task.completed_at = datetime.now(UTC)
    else:
        task.completed_at = None


def _replace_assignees(db: Session, task: ProjectTask, person_ids: list) -> None:
    wanted = []
    for value in person_ids:
        person_id = coerce_uuid(value)
        if person_id in wanted:
            continue
        if not db.get(Person, person_id):
            raise HTTPException(status_code=404, detail="Person not found")
        wanted.append(person_id)
    task.assignees = [item for item in task.assignees if item.person_id in wanted]
    present = {item.person_id for item in task.assignees}
    for person_id in wanted:
        if person_id not in present:
            task.assignees.append(ProjectTaskAssignee(person_id=person_id))


class Projects(ListResponseMixin):
    @staticmethod
    def create_from_template(db: Session, payload: ProjectFromTemplateCreate) -> ProjectInstantiation:
        """Create a project with dated, assigned tasks from a meeting template.

        The roster is read once, the plan is computed in memory, and every
        row is written in a single transaction: either the whole project
        exists afterwards or none of it does.
        """
        template = _load_template(db, payload)
        plan = plan_instantiation(
            TemplateDefinition.from_template(template),
            payload.reference_date,
            roster_snapshot(db),
        )
        status = validate_enum(payload.status or settings.default_project_status, ProjectStatus, "status")

        project = Project(
            id=uuid.uuid4(),
            name=payload.name,
            description=payload.description,
            template_id=template.id,
            meeting_type=template.meeting_type,
            reference_date=payload.reference_date,
            status=status,
            is_active=True,
        )
        db.add(project)
        milestones = {}
        for planned in plan.milestones:
            milestone = ProjectMilestone(
                id=planned.id,
                project=project,
                template_milestone_id=planned.template_milestone_id,
                title=planned.title,
                description=planned.description,
                due_date=planned.due_date,
                sort_order=planned.sort_order,
            )
            milestones[planned.id] = milestone
            db.add(milestone)

        created: dict = {}
        for planned in plan.tasks:
            task = ProjectTask(
                id=planned.id,
                project=project,
                milestone=milestones.get(planned.milestone_id),
                parent_task=created.get(planned.parent_task_id),
                depends_on_task=created.get(planned.depends_on_task_id),
                template_task_id=planned.template_task_id,
                title=planned.title,
                description=planned.description,
                status=planned.status,
                priority=planned.priority,
                level=planned.level,
                sort_order=planned.sort_order,
                days_from_meeting=planned.days_from_meeting,
                dependency_anchor=planned.dependency_anchor,
                dependency_lag_days=planned.dependency_lag_days,
                unresolved_roles=list(planned.unresolved_roles) or None,
                due_date=planned.due_date,
                is_active=True,
            )
            for person_id in planned.assigned_person_ids:
                task.assignees.append(ProjectTaskAssignee(person_id=person_id))
            created[planned.id] = task
            db.add(task)

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("project_instantiation_failed template_id=%s", template.id)
            raise InstantiationFailure(
                code="instantiation_failed",
                detail=f"Could not create project from template {template.id}",
            ) from exc
        db.refresh(project)

        for warning in plan.warnings:
            logger.warning(
                "project_instantiation_warning project_id=%s code=%s detail=%s",
                project.id,
                warning.code,
                warning.detail,
            )
        logger.info(
            "project_instantiated project_id=%s template_id=%s tasks=%s unassigned=%s",
            project.id,
            template.id,
            len(plan.tasks),
            len(plan.unassigned_task_ids),
        )
        return ProjectInstantiation(project=project, warnings=list(plan.warnings))

    @staticmethod
    def get(db: Session, project_id: str):
        return get_or_404(db, Project, project_id, "Project")

    @staticmethod
    def list(
        db: Session,
        template_id: str | None,
        meeting_type: str | None,
        status: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Project)
        if template_id:
            query = query.filter(Project.template_id == coerce_uuid(template_id))
        if meeting_type:
            query = query.filter(Project.meeting_type == validate_enum(meeting_type, MeetingType, "meeting_type"))
        if status:
            query = query.filter(Project.status == validate_enum(status, ProjectStatus, "status"))
        query = apply_is_active_filter(query, Project, is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Project.created_at,
                "name": Project.name,
                "reference_date": Project.reference_date,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, project_id: str, payload: ProjectUpdate):
        project = get_or_404(db, Project, project_id, "Project")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(project, key, value)
        db.commit()
        db.refresh(project)
        return project

    @staticmethod
    def delete(db: Session, project_id: str):
        project = get_or_404(db, Project, project_id, "Project")
        project.is_active = False
        db.commit()
        logger.info("project_deactivated project_id=%s", project.id)

    @staticmethod
    def task_tree(db: Session, project_id: str):
        project = get_or_404(db, Project, project_id, "Project")
        return build_task_tree(_active_tasks(db, project.id), milestone_rank(project.milestones))

    @staticmethod
    def reschedule(db: Session, project_id: str, payload: ProjectReschedule) -> ScheduleUpdate:
        project = _lock_project(db, project_id)
        previous = project.reference_date
        reference_date = payload.reference_date
        project.reference_date = reference_date
        update = _recompute(db, project, _active_tasks(db, project.id, lock=True))
        db.commit()
        logger.info(
            "project_rescheduled project_id=%s from=%s to=%s changed=%s",
            project.id,
            previous,
            reference_date,
            len(update.changed_task_ids),
        )
        return update

    @staticmethod
    def recompute_dates(db: Session, project_id: str) -> ScheduleUpdate:
        project = _lock_project(db, project_id)
        update = _recompute(db, project, _active_tasks(db, project.id, lock=True))
        db.commit()
        logger.info("project_dates_recomputed project_id=%s changed=%s", project.id, len(update.changed_task_ids))
        return update

    @staticmethod
    def resolve_roles(db: Session, project_id: str) -> RoleRefresh:
        """Retry role tags that found nobody when the project was created."""
        project = _lock_project(db, project_id)
        roster = roster_snapshot(db)
        refresh = RoleRefresh(project=project)
        for task in _active_tasks(db, project.id, lock=True):
            if not task.unresolved_roles:
                continue
            resolution = resolve_roles(task.unresolved_roles, roster)
            present = set(task.assigned_to_person_ids)
            for person_id in resolution.person_ids:
                if person_id not in present:
                    task.assignees.append(ProjectTaskAssignee(person_id=person_id))
            if resolution.person_ids:
                refresh.assigned_task_ids.append(task.id)
            task.unresolved_roles = [role.value for role in resolution.unresolved_roles] or None
            refresh.warnings.extend(
                UnresolvedRoleWarning(task_id=task.id, role=role.value) for role in resolution.unresolved_roles
            )
        db.commit()
        logger.info(
            "project_roles_resolved project_id=%s assigned_tasks=%s still_unresolved=%s",
            project.id,
            len(refresh.assigned_task_ids),
            len(refresh.warnings),
        )
        return refresh


class ProjectTasks(ListResponseMixin):
    @staticmethod
    def get(db: Session, task_id: str):
        return get_or_404(db, ProjectTask, task_id, "Project task")

    @staticmethod
    def list(
        db: Session,
        project_id: str | None,
        milestone_id: str | None,
        status: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(ProjectTask).options(selectinload(ProjectTask.assignees))
        if project_id:
            query = query.filter(ProjectTask.project_id == coerce_uuid(project_id))
        if milestone_id:
            query = query.filter(ProjectTask.milestone_id == coerce_uuid(milestone_id))
        if status:
            query = query.filter(ProjectTask.status == validate_enum(status, TaskStatus, "status"))
        query = apply_is_active_filter(query, ProjectTask, is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": ProjectTask.created_at,
                "due_date": ProjectTask.due_date,
                "sort_order": ProjectTask.sort_order,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, task_id: str, payload: ProjectTaskUpdate):
        task = get_or_404(db, ProjectTask, task_id, "Project task")
        data = payload.model_dump(exclude_unset=True)
        person_ids = data.pop("assigned_to_person_ids", None)
        status = data.pop("status", None)

        if data.get("days_from_meeting") is not None:
            data.setdefault("depends_on_task_id", None)
        if data.get("depends_on_task_id") is not None:
            target_id = data["depends_on_task_id"]
            data.setdefault("days_from_meeting", None)
            if target_id == task.id:
                raise HTTPException(status_code=400, detail="Task cannot depend on itself")
            target = db.get(ProjectTask, target_id)
            if not target or target.project_id != task.project_id or not target.is_active:
                raise HTTPException(status_code=400, detail="Dependency task not found in this project")
            siblings = _active_tasks(db, task.project_id)
            if would_create_cycle(dependency_edges(siblings), task.id, target_id):
                raise HTTPException(status_code=400, detail="Dependency would create a cycle")

        for key, value in data.items():
            setattr(task, key, value)
        if status is not None:
            _set_completion(task, status)
        if person_ids is not None:
            _replace_assignees(db, task, person_ids)

        # Completion dates feed completion-anchored dependents
        if status is not None or any(key in data for key in SCHEDULE_FIELDS):
            db.flush()
            project = _lock_project(db, task.project_id)
            _recompute(db, project, _active_tasks(db, project.id, lock=True))
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def due_summary(db: Session, project_id: str, on: date | None = None) -> dict[str, int]:
        project = get_or_404(db, Project, project_id, "Project")
        summary = {"overdue": 0, "due_today": 0, "upcoming": 0, "none": 0}
        current = on or today(planner_zone(settings.planner_timezone))
        for task in _active_tasks(db, project.id):
            if task.status in (TaskStatus.completed, TaskStatus.cancelled):
                continue
            summary[due_date_urgency(task.due_date, current)] += 1
        return summary


class ProjectMilestones(ListResponseMixin):
    @staticmethod
    def list(db: Session, project_id: str, limit: int = 100, offset: int = 0) -> list[MilestoneSummary]:
        project = get_or_404(db, Project, project_id, "Project")
        milestones = (
            db.query(ProjectMilestone)
            .filter(ProjectMilestone.project_id == project.id)
            .order_by(ProjectMilestone.sort_order.asc(), ProjectMilestone.id.asc())
        )
        milestones = apply_pagination(milestones, limit, offset).all()
        progress = milestone_progress_map(milestones, _active_tasks(db, project.id))
        return [MilestoneSummary(milestone=milestone, progress=progress[milestone.id]) for milestone in milestones]


projects = Projects()
project_tasks = ProjectTasks()
project_milestones = ProjectMilestones()
