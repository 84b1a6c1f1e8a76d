"""Error and warning taxonomy for template task trees and date resolution.

Errors are exceptions so the write path can raise them, but the pure engine
mostly *collects* them and returns them beside whatever did resolve.
Warnings are never raised; they are surfaced on the created project.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException


@dataclass(eq=False)
class TaskGraphError(Exception):
    code: str
    detail: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.detail

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


@dataclass(eq=False)
class StructuralError(TaskGraphError):
    """A parent or milestone reference that cannot be trusted."""

    task_id: Any = None
    related_ids: tuple = ()

    @classmethod
    def build(cls, code: str, task_id: Any, detail: str, related_ids: tuple = ()) -> StructuralError:
        return cls(code=code, detail=detail, task_id=task_id, related_ids=tuple(related_ids))


@dataclass(eq=False)
class DependencyCycleError(TaskGraphError):
    task_ids: tuple = ()
    blocked_task_ids: tuple = ()

    @classmethod
    def for_cycle(cls, task_ids: list, blocked_task_ids: list | None = None) -> DependencyCycleError:
        chain = " -> ".join(str(task_id) for task_id in [*task_ids, task_ids[0]])
        return cls(
            code="dependency_cycle",
            detail=f"Task dependencies form a cycle: {chain}",
            task_ids=tuple(task_ids),
            blocked_task_ids=tuple(blocked_task_ids or ()),
        )


@dataclass(frozen=True)
class UnresolvedRoleWarning:
    task_id: Any
    role: str
    code: str = "unresolved_role"

    @property
    def detail(self) -> str:
        return f"No active team member holds role {self.role}; task {self.task_id} is unassigned for it"


@dataclass(frozen=True)
class UnresolvedDependencyWarning:
    task_id: Any
    depends_on_task_id: Any
    reason: str
    code: str = "unresolved_dependency"

    @property
    def detail(self) -> str:
        return f"Task {self.task_id} depends on {self.depends_on_task_id}, which is {self.reason}"


@dataclass(eq=False)
class InstantiationError(TaskGraphError):
    retryable: bool = False


@dataclass(eq=False)
class TemplateValidationError(InstantiationError):
    errors: tuple = field(default_factory=tuple)

    @classmethod
    def from_errors(cls, template_id: Any, errors: list[TaskGraphError]) -> TemplateValidationError:
        summary = "; ".join(error.detail for error in errors)
        return cls(
            code="template_invalid",
            detail=f"Template {template_id} cannot be instantiated: {summary}",
            errors=tuple(errors),
        )


@dataclass(eq=False)
class InstantiationFailure(InstantiationError):
    status_code: int = 500
    retryable: bool = True


def as_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, TaskGraphError):
        return exc.to_http_exception()
    if isinstance(exc, HTTPException):
        return exc
    return HTTPException(status_code=500, detail=str(exc) or "Task graph error")
