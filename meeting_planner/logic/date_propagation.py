"""Resolve concrete due dates from a reference date.

Offset tasks land on ``reference_date + days_from_meeting``. Dependent tasks
take the date of the task they reference (its due date, or its completion
date for completion-anchored dependencies) plus a signed lag. The result is a
pure function of its inputs, so it is safe to recompute on every read.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Any

from meeting_planner.logic.dates import add_days, to_date
from meeting_planner.logic.errors import DependencyCycleError, UnresolvedDependencyWarning

logger = logging.getLogger(__name__)

ANCHOR_DUE_DATE = "due_date"
ANCHOR_COMPLETION = "completion"


@dataclass(frozen=True)
class DependencyEdge:
    task_id: Any
    depends_on_task_id: Any
    anchor: str = ANCHOR_DUE_DATE
    lag_days: int = 0


@dataclass
class PropagationResult:
    reference_date: date | None
    due_dates: dict = field(default_factory=dict)
    errors: list[DependencyCycleError] = field(default_factory=list)
    warnings: list[UnresolvedDependencyWarning] = field(default_factory=list)

    @property
    def resolved_ids(self) -> set:
        return {task_id for task_id, value in self.due_dates.items() if value is not None}

    @property
    def unresolved_ids(self) -> set:
        return {task_id for task_id, value in self.due_dates.items() if value is None}

    @property
    def ok(self) -> bool:
        return not self.errors


def _anchor_value(value) -> str:
    if value is None:
        return ANCHOR_DUE_DATE
    return getattr(value, "value", value)


def dependency_edges(tasks: Iterable) -> list[DependencyEdge]:
    edges: list[DependencyEdge] = []
    for task in tasks:
        if task.depends_on_task_id is None:
            continue
        edges.append(
            DependencyEdge(
                task_id=task.id,
                depends_on_task_id=task.depends_on_task_id,
                anchor=_anchor_value(getattr(task, "dependency_anchor", None)),
                lag_days=getattr(task, "dependency_lag_days", None) or 0,
            )
        )
    return edges


def _edge_map(edges: Iterable[DependencyEdge]) -> dict:
    mapping: dict = {}
    for edge in edges:
        if edge.task_id in mapping:
            raise ValueError(f"Task {edge.task_id} has more than one dependency")
        mapping[edge.task_id] = edge
    return mapping


def find_dependency_cycles(edges: Iterable[DependencyEdge]) -> list[DependencyCycleError]:
    """Report every dependency cycle once, with the tasks stranded behind it.

    Each task depends on at most one other task, so following the
    ``depends_on`` pointer from any task either terminates or enters exactly
    one cycle.
    """
    by_task = _edge_map(edges)
    cycle_of: dict = {}
    cycles: list[list] = []
    settled: set = set()

    for start in by_task:
        path: list = []
        position: dict = {}
        current = start
        while current in by_task and current not in settled:
            if current in position:
                members = path[position[current]:]
                index = len(cycles)
                cycles.append(members)
                for member in members:
                    cycle_of[member] = index
                break
            position[current] = len(path)
            path.append(current)
            current = by_task[current].depends_on_task_id
        settled.update(path)

    blocked: dict[int, list] = {index: [] for index in range(len(cycles))}
    for start in by_task:
        if start in cycle_of:
            continue
        current = start
        seen: set = set()
        while current in by_task and current not in cycle_of and current not in seen:
            seen.add(current)
            current = by_task[current].depends_on_task_id
        if current in cycle_of:
            blocked[cycle_of[current]].append(start)

    return [
        DependencyCycleError.for_cycle(members, sorted(blocked[index], key=str))
        for index, members in enumerate(cycles)
    ]


def would_create_cycle(edges: Iterable[DependencyEdge], task_id, depends_on_task_id) -> bool:
    """True if making ``task_id`` depend on ``depends_on_task_id`` closes a loop."""
    by_task = {edge.task_id: edge for edge in edges if edge.task_id != task_id}
    current = depends_on_task_id
    seen: set = set()
    while current is not None and current not in seen:
        if current == task_id:
            return True
        seen.add(current)
        edge = by_task.get(current)
        current = edge.depends_on_task_id if edge else None
    return False


def dependency_order(task_ids: Iterable, edges: Iterable[DependencyEdge]) -> list:
    """Topological order of ``task_ids``: referenced tasks precede dependents.

    Tasks stuck in (or behind) a cycle are omitted.
    """
    ordered_ids = list(task_ids)
    known = set(ordered_ids)
    by_task = {edge.task_id: edge for edge in edges if edge.task_id in known}
    indegree = {task_id: 0 for task_id in ordered_ids}
    dependents: dict = {}
    for edge in by_task.values():
        if edge.depends_on_task_id in known:
            indegree[edge.task_id] += 1
            dependents.setdefault(edge.depends_on_task_id, []).append(edge.task_id)

    queue = deque(task_id for task_id in ordered_ids if indegree[task_id] == 0)
    order: list = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for dependent in dependents.get(current, []):
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                queue.append(dependent)
    return order


def propagate_dates(
    tasks: Iterable,
    reference_date: date | None,
    edges: Iterable[DependencyEdge] | None = None,
    tz: tzinfo | None = None,
) -> PropagationResult:
    items = list(tasks)
    by_id = {task.id: task for task in items}
    edge_list = list(edges) if edges is not None else dependency_edges(items)
    by_task = _edge_map(edge_list)
    result = PropagationResult(reference_date=reference_date)
    result.due_dates = {task.id: None for task in items}

    if reference_date is not None:
        for task in items:
            if task.id in by_task or task.days_from_meeting is None:
                continue
            result.due_dates[task.id] = add_days(reference_date, task.days_from_meeting)

    relevant_edges = [edge for edge in edge_list if edge.task_id in by_id]
    result.errors = find_dependency_cycles(relevant_edges)
    if result.errors:
        logger.warning(
            "dependency_cycles_detected count=%s tasks=%s",
            len(result.errors),
            [list(error.task_ids) for error in result.errors],
        )

    for task_id in dependency_order([task.id for task in items if task.id in by_task], relevant_edges):
        edge = by_task[task_id]
        target = by_id.get(edge.depends_on_task_id)
        if target is None:
            result.warnings.append(UnresolvedDependencyWarning(task_id, edge.depends_on_task_id, "missing"))
            continue
        anchor_date = result.due_dates.get(target.id)
        if edge.anchor == ANCHOR_COMPLETION and getattr(target, "completed_at", None) is not None:
            anchor_date = to_date(target.completed_at, tz)
        if anchor_date is None:
            result.warnings.append(UnresolvedDependencyWarning(task_id, edge.depends_on_task_id, "undated"))
            continue
        result.due_dates[task_id] = add_days(anchor_date, edge.lag_days)
    return result


def apply_due_dates(tasks: Iterable, result: PropagationResult) -> list:
    """Write resolved dates onto ``tasks``; return those whose date changed."""
    changed = []
    for task in tasks:
        if task.id not in result.due_dates:
            continue
        value = result.due_dates[task.id]
        if task.due_date != value:
            task.due_date = value
            changed.append(task)
    return changed
