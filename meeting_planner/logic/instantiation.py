"""Turn an offset/role based template into a concrete, dated project plan.

Planning is pure: it reads a ``TemplateDefinition`` and a roster snapshot and
returns an ``InstantiationPlan`` holding every live milestone and task with
fresh ids, resolved assignees and computed due dates. Persisting the plan is
the caller's job (see ``meeting_planner.services.projects``).

Creation order
--------------
Tasks are emitted so that a parent always precedes its children and a
referenced task always precedes the tasks that depend on it. Independent
(offset or date-less) tasks form phase 1 and dependent tasks phase 2; within
those constraints phase 1 comes first and hierarchy pre-order breaks ties.
This is a topological sort over parent and dependency edges, so dependency
chains of any length are supported.
"""

from __future__ import annotations

import heapq
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from meeting_planner.logic.date_propagation import (
    apply_due_dates,
    dependency_edges,
    find_dependency_cycles,
    propagate_dates,
)
from meeting_planner.logic.errors import (
    StructuralError,
    TaskGraphError,
    TemplateValidationError,
    UnresolvedRoleWarning,
)
from meeting_planner.logic.milestones import latest_due_dates, milestone_rank, order_milestones
from meeting_planner.logic.role_resolution import RosterMember, normalize_roles, resolve_roles
from meeting_planner.logic.task_tree import build_task_tree, find_structural_errors, iter_hierarchy
from meeting_planner.models.projects import DependencyAnchor, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

PHASE_INDEPENDENT = 1
PHASE_DEPENDENT = 2


@dataclass
class TemplateDefinition:
    template_id: Any
    name: str
    milestones: list = field(default_factory=list)
    tasks: list = field(default_factory=list)

    @classmethod
    def from_template(cls, template) -> TemplateDefinition:
        return cls(
            template_id=template.id,
            name=template.name,
            milestones=list(template.milestones),
            tasks=[task for task in template.tasks if task.is_active],
        )


@dataclass
class PlannedMilestone:
    id: Any
    template_milestone_id: Any
    title: str
    description: str | None
    sort_order: int
    due_date: date | None = None


@dataclass
class PlannedTask:
    id: Any
    template_task_id: Any
    milestone_id: Any
    parent_task_id: Any
    title: str
    description: str | None
    priority: TaskPriority
    level: int
    sort_order: int
    days_from_meeting: int | None
    depends_on_task_id: Any
    dependency_anchor: DependencyAnchor
    dependency_lag_days: int
    assigned_person_ids: tuple = ()
    unresolved_roles: tuple = ()
    phase: int = PHASE_INDEPENDENT
    due_date: date | None = None
    status: TaskStatus = TaskStatus.todo
    completed_at: Any = None


@dataclass
class InstantiationPlan:
    template_id: Any
    reference_date: date
    milestones: list[PlannedMilestone] = field(default_factory=list)
    tasks: list[PlannedTask] = field(default_factory=list)
    task_id_map: dict = field(default_factory=dict)
    milestone_id_map: dict = field(default_factory=dict)
    warnings: list = field(default_factory=list)

    @property
    def phase_one(self) -> list[PlannedTask]:
        return [task for task in self.tasks if task.phase == PHASE_INDEPENDENT]

    @property
    def phase_two(self) -> list[PlannedTask]:
        return [task for task in self.tasks if task.phase == PHASE_DEPENDENT]

    @property
    def unassigned_task_ids(self) -> list:
        return [task.id for task in self.tasks if not task.assigned_person_ids]


def _phase(task) -> int:
    return PHASE_DEPENDENT if task.depends_on_task_id is not None else PHASE_INDEPENDENT


def validate_template(template: TemplateDefinition) -> list[TaskGraphError]:
    """Collect every problem that would block instantiation."""
    tasks = list(template.tasks)
    task_ids = {task.id for task in tasks}
    milestone_ids = {milestone.id for milestone in template.milestones}
    errors: list[TaskGraphError] = list(find_structural_errors(tasks, require_milestone=True))

    for task in tasks:
        if task.milestone_id is not None and task.milestone_id not in milestone_ids:
            errors.append(
                StructuralError.build(
                    "unknown_milestone",
                    task.id,
                    f"Task {task.id} references milestone {task.milestone_id} outside the template",
                    (task.milestone_id,),
                )
            )
        if task.depends_on_task_id is not None and task.depends_on_task_id not in task_ids:
            errors.append(
                StructuralError.build(
                    "missing_dependency",
                    task.id,
                    f"Task {task.id} depends on task {task.depends_on_task_id} outside the template",
                    (task.depends_on_task_id,),
                )
            )
        try:
            normalize_roles(task.assigned_roles)
        except ValueError:
            errors.append(
                StructuralError.build("invalid_role", task.id, f"Task {task.id} has an unknown role tag")
            )

    edges = [edge for edge in dependency_edges(tasks) if edge.depends_on_task_id in task_ids]
    errors.extend(find_dependency_cycles(edges))
    return errors


def creation_order(tasks: Iterable, milestones: Iterable = ()) -> list:
    items = list(tasks)
    forest = build_task_tree(items, milestone_rank(milestones))
    rank = {node.id: index for index, node in enumerate(iter_hierarchy(forest))}
    by_id = {task.id: task for task in items}

    indegree = {task.id: 0 for task in items}
    followers: dict = {}
    for task in items:
        for predecessor in (task.parent_task_id, task.depends_on_task_id):
            if predecessor is not None and predecessor in by_id:
                indegree[task.id] += 1
                followers.setdefault(predecessor, []).append(task.id)

    # Tasks outside the forest (parent cycles) sort last
    fallback = len(rank)
    heap = [(_phase(task), rank.get(task.id, fallback), str(task.id)) for task in items if indegree[task.id] == 0]
    heapq.heapify(heap)
    by_key = {str(task.id): task for task in items}
    order: list = []
    while heap:
        _, _, key = heapq.heappop(heap)
        task = by_key[key]
        order.append(task)
        for follower_id in followers.get(task.id, []):
            indegree[follower_id] -= 1
            if indegree[follower_id] == 0:
                follower = by_id[follower_id]
                heapq.heappush(heap, (_phase(follower), rank.get(follower_id, fallback), str(follower_id)))

    if len(order) < len(items):
        placed = {task.id for task in order}
        stuck = [task.id for task in items if task.id not in placed]
        raise TemplateValidationError.from_errors(
            None,
            [
                StructuralError.build(
                    "creation_cycle",
                    stuck[0],
                    "Parent and dependency links leave no valid creation order for tasks "
                    + ", ".join(str(task_id) for task_id in stuck),
                    tuple(stuck),
                )
            ],
        )
    return order


def plan_instantiation(
    template: TemplateDefinition,
    reference_date: date,
    roster: Iterable[RosterMember],
    id_factory: Callable[[], Any] = uuid.uuid4,
) -> InstantiationPlan:
    roster_snapshot = tuple(roster)
    errors = validate_template(template)
    if errors:
        raise TemplateValidationError.from_errors(template.template_id, errors)

    milestones = order_milestones(template.milestones)
    try:
        ordered = creation_order(template.tasks, milestones)
    except TemplateValidationError as exc:
        raise TemplateValidationError.from_errors(template.template_id, list(exc.errors)) from exc
    levels = {node.id: node.level for node in iter_hierarchy(build_task_tree(ordered, milestone_rank(milestones)))}

    plan = InstantiationPlan(template_id=template.template_id, reference_date=reference_date)
    for milestone in milestones:
        planned_milestone = PlannedMilestone(
            id=id_factory(),
            template_milestone_id=milestone.id,
            title=milestone.title,
            description=milestone.description,
            sort_order=milestone.sort_order or 0,
        )
        plan.milestone_id_map[milestone.id] = planned_milestone.id
        plan.milestones.append(planned_milestone)

    for task in ordered:
        live_id = id_factory()
        plan.task_id_map[task.id] = live_id
        resolution = resolve_roles(task.assigned_roles, roster_snapshot)
        for role in resolution.unresolved_roles:
            plan.warnings.append(UnresolvedRoleWarning(task_id=live_id, role=role.value))
        dependent = task.depends_on_task_id is not None
        plan.tasks.append(
            PlannedTask(
                id=live_id,
                template_task_id=task.id,
                milestone_id=plan.milestone_id_map.get(task.milestone_id),
                parent_task_id=plan.task_id_map[task.parent_task_id] if task.parent_task_id is not None else None,
                title=task.title.strip(),
                description=task.description,
                priority=task.priority or TaskPriority.medium,
                level=levels[task.id],
                sort_order=task.sort_order or 0,
                days_from_meeting=None if dependent else task.days_from_meeting,
                depends_on_task_id=plan.task_id_map[task.depends_on_task_id] if dependent else None,
                dependency_anchor=task.dependency_anchor or DependencyAnchor.due_date,
                dependency_lag_days=task.dependency_lag_days or 0,
                assigned_person_ids=resolution.person_ids,
                unresolved_roles=tuple(role.value for role in resolution.unresolved_roles),
                phase=_phase(task),
            )
        )

    result = propagate_dates(plan.tasks, reference_date)
    if result.errors:
        raise TemplateValidationError.from_errors(template.template_id, result.errors)
    apply_due_dates(plan.tasks, result)
    plan.warnings.extend(result.warnings)

    latest = latest_due_dates(plan.tasks)
    for planned_milestone in plan.milestones:
        planned_milestone.due_date = latest.get(planned_milestone.id)

    logger.info(
        "instantiation_planned template_id=%s tasks=%s phase_two=%s warnings=%s",
        template.template_id,
        len(plan.tasks),
        len(plan.phase_two),
        len(plan.warnings),
    )
    return plan
