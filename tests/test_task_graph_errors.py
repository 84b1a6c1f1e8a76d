"""Tests for the task graph error taxonomy."""

from fastapi import HTTPException

from meeting_planner.logic.errors import (
    DependencyCycleError,
    InstantiationFailure,
    StructuralError,
    TemplateValidationError,
    UnresolvedRoleWarning,
    as_http_exception,
)


def test_structural_error_to_http_exception():
    exc = StructuralError.build("missing_parent", "t1", "Parent missing")
    http_exc = exc.to_http_exception()
    assert isinstance(http_exc, HTTPException)
    assert http_exc.status_code == 400
    assert http_exc.detail == "Parent missing"
    assert str(exc) == "Parent missing"


def test_cycle_error_names_every_member():
    exc = DependencyCycleError.for_cycle(["x", "y"])
    assert exc.code == "dependency_cycle"
    assert exc.task_ids == ("x", "y")
    assert "x -> y -> x" in exc.detail


def test_template_validation_error_summarizes_errors():
    errors = [
        StructuralError.build("missing_milestone", "t1", "Root task t1 has no milestone"),
        DependencyCycleError.for_cycle(["a", "b"]),
    ]
    exc = TemplateValidationError.from_errors("tpl", errors)
    assert exc.code == "template_invalid"
    assert exc.errors == tuple(errors)
    assert "Root task t1 has no milestone" in exc.detail
    assert not exc.retryable


def test_instantiation_failure_is_retryable_server_error():
    exc = InstantiationFailure(code="instantiation_failed", detail="Write failed")
    http_exc = as_http_exception(exc)
    assert http_exc.status_code == 500
    assert exc.retryable


def test_as_http_exception_wraps_unknown_errors():
    http_exc = as_http_exception(RuntimeError("boom"))
    assert http_exc.status_code == 500
    assert http_exc.detail == "boom"


def test_warnings_are_values_not_exceptions():
    warning = UnresolvedRoleWarning(task_id="t1", role="tax_planner")
    assert warning == UnresolvedRoleWarning(task_id="t1", role="tax_planner")
    assert not isinstance(warning, Exception)
    assert "tax_planner" in warning.detail
