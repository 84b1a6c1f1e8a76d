from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any

from meeting_planner.logic.task_tree import resolve_milestone_ids

COMPLETED = "completed"


@dataclass(frozen=True)
class MilestoneProgress:
    milestone_id: Any
    total: int
    completed: int

    @property
    def percent(self) -> int:
        if not self.total:
            return 0
        # Halves round up
        return math.floor(self.completed * 100 / self.total + 0.5)


def order_milestones(milestones: Iterable) -> list:
    return sorted(milestones, key=lambda milestone: (milestone.sort_order or 0, str(milestone.id)))


def milestone_rank(milestones: Iterable) -> dict:
    return {milestone.id: index for index, milestone in enumerate(order_milestones(milestones))}


def _is_completed(task) -> bool:
    return getattr(task.status, "value", task.status) == COMPLETED


def _tasks_by_milestone(tasks: Iterable) -> dict:
    items = list(tasks)
    owners = resolve_milestone_ids(items)
    grouped: dict = {}
    for task in items:
        grouped.setdefault(owners[task.id], []).append(task)
    return grouped


def milestone_progress(milestone_id, tasks: Iterable) -> MilestoneProgress:
    members = _tasks_by_milestone(tasks).get(milestone_id, [])
    return MilestoneProgress(
        milestone_id=milestone_id,
        total=len(members),
        completed=sum(1 for task in members if _is_completed(task)),
    )


def milestone_progress_map(milestones: Iterable, tasks: Iterable) -> dict:
    grouped = _tasks_by_milestone(tasks)
    progress = {}
    for milestone in order_milestones(milestones):
        members = grouped.get(milestone.id, [])
        progress[milestone.id] = MilestoneProgress(
            milestone_id=milestone.id,
            total=len(members),
            completed=sum(1 for task in members if _is_completed(task)),
        )
    return progress


def latest_due_dates(tasks: Iterable) -> dict:
    """Latest resolved due date per milestone, descendants included."""
    latest: dict[Any, date] = {}
    for milestone_id, members in _tasks_by_milestone(tasks).items():
        dates = [task.due_date for task in members if task.due_date is not None]
        if milestone_id is not None and dates:
            latest[milestone_id] = max(dates)
    return latest
