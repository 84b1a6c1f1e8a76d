from datetime import UTC, date, datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from meeting_planner.logic.date_propagation import (
    ANCHOR_COMPLETION,
    DependencyEdge,
    apply_due_dates,
    dependency_order,
    find_dependency_cycles,
    propagate_dates,
    would_create_cycle,
)
from meeting_planner.logic.errors import DependencyCycleError

REFERENCE = date(2025, 10, 1)


def _task(task_id, days=None, depends_on=None, anchor="due_date", lag=0, completed_at=None, due_date=None):
    return SimpleNamespace(
        id=task_id,
        days_from_meeting=days,
        depends_on_task_id=depends_on,
        dependency_anchor=anchor,
        dependency_lag_days=lag,
        completed_at=completed_at,
        due_date=due_date,
    )


def test_offset_task_lands_relative_to_reference_date():
    result = propagate_dates([_task("a", days=-80)], REFERENCE)

    assert result.due_dates["a"] == date(2025, 7, 13)
    assert result.ok


def test_dependent_task_shares_date_of_its_target():
    tasks = [_task("a", days=-80), _task("b", depends_on="a")]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates == {"a": date(2025, 7, 13), "b": date(2025, 7, 13)}


def test_lag_is_added_to_dependency_date():
    tasks = [_task("a", days=1), _task("b", depends_on="a", lag=2), _task("c", depends_on="b", lag=-1)]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates["b"] == date(2025, 10, 4)
    assert result.due_dates["c"] == date(2025, 10, 3)


def test_chain_resolves_regardless_of_input_order():
    tasks = [_task("c", depends_on="b"), _task("b", depends_on="a"), _task("a", days=0)]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates == {"a": REFERENCE, "b": REFERENCE, "c": REFERENCE}


def test_task_without_rule_has_no_date():
    result = propagate_dates([_task("a")], REFERENCE)

    assert result.due_dates["a"] is None
    assert result.unresolved_ids == {"a"}


def test_missing_reference_date_leaves_everything_undated():
    tasks = [_task("a", days=-5), _task("b", depends_on="a")]
    result = propagate_dates(tasks, None)

    assert result.resolved_ids == set()
    assert [warning.reason for warning in result.warnings] == ["undated"]


def test_dependency_on_unknown_task_warns():
    result = propagate_dates([_task("b", depends_on="ghost")], REFERENCE)

    assert result.due_dates["b"] is None
    assert result.warnings[0].reason == "missing"
    assert result.warnings[0].depends_on_task_id == "ghost"


def test_completion_anchor_uses_actual_completion_date():
    tasks = [
        _task("a", days=-10, completed_at=datetime(2025, 9, 25, 16, 0, tzinfo=UTC)),
        _task("b", depends_on="a", anchor=ANCHOR_COMPLETION, lag=1),
        _task("c", depends_on="a", lag=1),
    ]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates["b"] == date(2025, 9, 26)
    assert result.due_dates["c"] == date(2025, 9, 22)


def test_completion_anchor_uses_local_calendar_day():
    # 02:30 UTC on the 26th is still the 25th in New York
    tasks = [
        _task("a", days=-10, completed_at=datetime(2025, 9, 26, 2, 30, tzinfo=UTC)),
        _task("b", depends_on="a", anchor=ANCHOR_COMPLETION, lag=1),
    ]

    assert propagate_dates(tasks, REFERENCE).due_dates["b"] == date(2025, 9, 27)
    local = propagate_dates(tasks, REFERENCE, tz=ZoneInfo("America/New_York"))
    assert local.due_dates["b"] == date(2025, 9, 26)


def test_completion_anchor_falls_back_to_due_date():
    tasks = [_task("a", days=-10), _task("b", depends_on="a", anchor=ANCHOR_COMPLETION)]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates["b"] == date(2025, 9, 21)


def test_two_task_cycle_yields_one_error_and_no_dates():
    tasks = [_task("x", depends_on="y"), _task("y", depends_on="x")]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates == {"x": None, "y": None}
    assert len(result.errors) == 1
    error = result.errors[0]
    assert isinstance(error, DependencyCycleError)
    assert set(error.task_ids) == {"x", "y"}
    assert not result.ok


def test_cycle_does_not_block_unrelated_tasks():
    tasks = [
        _task("x", depends_on="y"),
        _task("y", depends_on="x"),
        _task("z", depends_on="x"),
        _task("a", days=3),
    ]
    result = propagate_dates(tasks, REFERENCE)

    assert result.due_dates["a"] == date(2025, 10, 4)
    assert result.due_dates["z"] is None
    assert result.errors[0].blocked_task_ids == ("z",)


def test_find_dependency_cycles_on_acyclic_edges():
    edges = [DependencyEdge("b", "a"), DependencyEdge("c", "b")]

    assert find_dependency_cycles(edges) == []


def test_duplicate_edges_for_one_task_are_rejected():
    with pytest.raises(ValueError):
        find_dependency_cycles([DependencyEdge("b", "a"), DependencyEdge("b", "c")])


def test_would_create_cycle():
    edges = [DependencyEdge("b", "a"), DependencyEdge("c", "b")]

    assert would_create_cycle(edges, "a", "c")
    assert would_create_cycle(edges, "a", "a")
    assert not would_create_cycle(edges, "d", "c")


def test_dependency_order_places_targets_first():
    edges = [DependencyEdge("c", "b"), DependencyEdge("b", "a")]

    assert dependency_order(["c", "b", "a"], edges) == ["a", "b", "c"]


def test_apply_due_dates_returns_only_changed_tasks():
    tasks = [_task("a", days=0, due_date=REFERENCE), _task("b", days=1)]
    result = propagate_dates(tasks, REFERENCE)
    changed = apply_due_dates(tasks, result)

    assert [task.id for task in changed] == ["b"]
    assert tasks[1].due_date == date(2025, 10, 2)


def test_propagation_is_deterministic():
    tasks = [_task("a", days=-3), _task("b", depends_on="a", lag=1), _task("c", depends_on="b")]

    assert propagate_dates(tasks, REFERENCE).due_dates == propagate_dates(list(reversed(tasks)), REFERENCE).due_dates
