from datetime import date
from types import SimpleNamespace

from meeting_planner.logic.milestones import (
    latest_due_dates,
    milestone_progress,
    milestone_progress_map,
    milestone_rank,
    order_milestones,
)
from meeting_planner.models.projects import TaskStatus


def _task(task_id, milestone=None, parent=None, status=TaskStatus.todo, due_date=None):
    return SimpleNamespace(
        id=task_id,
        milestone_id=milestone,
        parent_task_id=parent,
        status=status,
        due_date=due_date,
        sort_order=0,
    )


def _milestone(milestone_id, sort_order):
    return SimpleNamespace(id=milestone_id, sort_order=sort_order)


def test_half_completed_milestone_reports_fifty_percent():
    tasks = [
        _task("a", "m1", status=TaskStatus.completed),
        _task("b", "m1", status=TaskStatus.completed),
        _task("c", "m1"),
        _task("d", "m1", status=TaskStatus.in_progress),
    ]
    progress = milestone_progress("m1", tasks)

    assert (progress.total, progress.completed, progress.percent) == (4, 2, 50)


def test_empty_milestone_reports_zero():
    assert milestone_progress("m1", []).percent == 0


def test_percent_is_rounded():
    tasks = [_task("a", "m1", status="completed"), _task("b", "m1"), _task("c", "m1")]

    assert milestone_progress("m1", tasks).percent == 33


def test_half_percent_rounds_up():
    def _eighths(completed):
        return [
            _task(str(index), "m1", status=TaskStatus.completed if index < completed else TaskStatus.todo)
            for index in range(8)
        ]

    assert milestone_progress("m1", _eighths(1)).percent == 13
    assert milestone_progress("m1", _eighths(5)).percent == 63


def test_subtasks_count_toward_their_root_milestone():
    tasks = [
        _task("root", "m1"),
        _task("child", parent="root", status=TaskStatus.completed),
    ]

    assert milestone_progress("m1", tasks).completed == 1
    assert milestone_progress("m1", tasks).total == 2


def test_progress_map_covers_every_milestone_in_order():
    milestones = [_milestone("m2", 1), _milestone("m1", 0)]
    tasks = [_task("a", "m1", status=TaskStatus.completed)]
    progress = milestone_progress_map(milestones, tasks)

    assert list(progress) == ["m1", "m2"]
    assert progress["m1"].percent == 100
    assert progress["m2"].total == 0


def test_order_and_rank_use_sort_order():
    milestones = [_milestone("b", 2), _milestone("a", 0), _milestone("c", 1)]

    assert [item.id for item in order_milestones(milestones)] == ["a", "c", "b"]
    assert milestone_rank(milestones) == {"a": 0, "c": 1, "b": 2}


def test_latest_due_dates_picks_max_per_milestone():
    tasks = [
        _task("a", "m1", due_date=date(2025, 7, 13)),
        _task("b", parent="a", due_date=date(2025, 8, 1)),
        _task("c", "m2"),
    ]

    assert latest_due_dates(tasks) == {"m1": date(2025, 8, 1)}
