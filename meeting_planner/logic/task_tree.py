"""Rebuild task hierarchies from flat records.

Works on any record exposing ``id``, ``parent_task_id``, ``milestone_id``,
``sort_order`` and ``level`` (ORM rows and the planning dataclasses alike).
Stored ``level`` values are never trusted; depth is recomputed here.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from meeting_planner.logic.errors import StructuralError


@dataclass
class TaskNode:
    task: Any
    level: int
    children: list[TaskNode] = field(default_factory=list)

    @property
    def id(self):
        return self.task.id


def sibling_sort_key(task) -> tuple[int, str]:
    return (task.sort_order or 0, str(task.id))


def _index(tasks: Iterable) -> dict:
    return {task.id: task for task in tasks}


def _children_map(tasks: list, by_id: dict) -> dict:
    children: dict = {}
    for task in tasks:
        parent_id = task.parent_task_id
        if parent_id is not None and parent_id in by_id:
            children.setdefault(parent_id, []).append(task)
    return children


def build_task_tree(tasks: Iterable, milestone_order: dict | None = None) -> list[TaskNode]:
    """Return the forest of root tasks with ordered, nested children.

    A task whose parent is not in the input is treated as a root, so a
    partially loaded task list still renders. Tasks caught in a parent cycle
    never reach a root and are left out; run ``find_structural_errors`` first
    when that matters.
    """
    items = list(tasks)
    by_id = _index(items)
    children = _children_map(items, by_id)
    rank = milestone_order or {}
    roots = [task for task in items if task.parent_task_id is None or task.parent_task_id not in by_id]
    roots.sort(key=lambda task: (rank.get(task.milestone_id, len(rank)), *sibling_sort_key(task)))

    forest: list[TaskNode] = []
    for root in roots:
        node = TaskNode(task=root, level=0)
        forest.append(node)
        stack = [node]
        while stack:
            current = stack.pop()
            for child in sorted(children.get(current.task.id, []), key=sibling_sort_key):
                child_node = TaskNode(task=child, level=current.level + 1)
                current.children.append(child_node)
                stack.append(child_node)
    return forest


def iter_hierarchy(forest: list[TaskNode]) -> Iterator[TaskNode]:
    """Pre-order walk: every parent is yielded before its children."""
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_level_drift(forest: list[TaskNode]) -> dict:
    return {node.id: node.level for node in iter_hierarchy(forest) if node.task.level != node.level}


def descendant_ids(tasks: Iterable, task_id) -> set:
    items = list(tasks)
    children = _children_map(items, _index(items))
    found: set = set()
    stack = [task_id]
    while stack:
        current = stack.pop()
        for child in children.get(current, []):
            if child.id not in found:
                found.add(child.id)
                stack.append(child.id)
    return found


def _ancestry(task, by_id: dict) -> tuple[list, bool]:
    """Walk from ``task`` towards its root; report whether a cycle stopped the walk."""
    chain = [task]
    seen = {task.id}
    current = task
    while current.parent_task_id is not None and current.parent_task_id in by_id:
        parent = by_id[current.parent_task_id]
        if parent.id in seen:
            return chain, True
        chain.append(parent)
        seen.add(parent.id)
        current = parent
    return chain, False


def resolve_milestone_ids(tasks: Iterable) -> dict:
    """Map every task id to the milestone it belongs to through its root."""
    items = list(tasks)
    by_id = _index(items)
    resolved: dict = {}
    for task in items:
        chain, cyclic = _ancestry(task, by_id)
        if cyclic:
            resolved[task.id] = task.milestone_id
            continue
        milestone_id = chain[-1].milestone_id
        if milestone_id is None:
            milestone_id = next((item.milestone_id for item in chain if item.milestone_id is not None), None)
        resolved[task.id] = milestone_id
    return resolved


def find_structural_errors(tasks: Iterable, require_milestone: bool = False) -> list[StructuralError]:
    items = list(tasks)
    by_id = _index(items)
    errors: list[StructuralError] = []

    for task in items:
        parent_id = task.parent_task_id
        if parent_id is not None and parent_id not in by_id:
            errors.append(
                StructuralError.build(
                    "missing_parent",
                    task.id,
                    f"Task {task.id} references missing parent task {parent_id}",
                    (parent_id,),
                )
            )

    done: set = set()
    for task in items:
        path: list = []
        position: dict = {}
        current = task.id
        while current is not None and current in by_id and current not in done:
            if current in position:
                cycle = path[position[current]:]
                errors.append(
                    StructuralError.build(
                        "parent_cycle",
                        cycle[0],
                        "Task hierarchy contains a cycle: " + " -> ".join(str(item) for item in cycle),
                        tuple(cycle),
                    )
                )
                break
            position[current] = len(path)
            path.append(current)
            current = by_id[current].parent_task_id
        done.update(path)

    if require_milestone:
        milestones = resolve_milestone_ids(items)
        for task in items:
            is_root = task.parent_task_id is None
            if is_root and task.milestone_id is None:
                errors.append(
                    StructuralError.build("missing_milestone", task.id, f"Root task {task.id} has no milestone")
                )
            elif not is_root and task.milestone_id is not None and milestones[task.id] != task.milestone_id:
                errors.append(
                    StructuralError.build(
                        "milestone_mismatch",
                        task.id,
                        f"Task {task.id} sits in milestone {task.milestone_id} "
                        f"but its root belongs to {milestones[task.id]}",
                        (milestones[task.id],),
                    )
                )
    return errors
