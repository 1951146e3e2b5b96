"""
Unit tests for working hours, crew size and time entry arithmetic.
"""
import pytest
from datetime import datetime, timedelta, timezone

from tasktree.domain.common.errors import ValidationError
from tasktree.domain.tasks.estimation import (
    ESTIMATION_SETTINGS,
    available_work_hours,
    configure_workday,
    effective_estimate,
    effort_to_duration_seconds,
    entry_person_hours,
    format_seconds,
    minimum_personnel,
    personnel_scenarios,
    productivity_duration_seconds,
    productivity_personnel,
    subtask_estimate_total,
    task_available_hours,
    tracked_seconds,
    validate_custom_estimate,
    working_window,
)
from tasktree.domain.tasks import engine
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Task, TimeEntry

TZ = timezone(timedelta(hours=2))


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    # 2024-01-08 is a Monday
    return datetime(2024, 1, day, hour, minute, tzinfo=TZ)


def test_available_hours_across_several_days():
    """Mon 09:00 -> Wed 12:00 with a 07-15 workday: 6 + 8 + 5."""
    assert available_work_hours(_at(8, 9), _at(10, 12)) == pytest.approx(19.0)


def test_available_hours_same_day():
    assert available_work_hours(_at(8, 8), _at(8, 10)) == pytest.approx(2.0)


def test_available_hours_start_after_workday():
    assert available_work_hours(_at(8, 16), _at(9, 10)) == pytest.approx(3.0)


def test_available_hours_has_a_floor():
    assert available_work_hours(_at(8, 12), _at(8, 11)) == 1.0
    assert available_work_hours(_at(8, 14, 30), _at(8, 15)) == 1.0


def test_custom_workday_override():
    assert available_work_hours(_at(8, 0), _at(8, 23), workday_start=8, workday_end=16) == pytest.approx(8.0)


def test_configure_workday_validates_and_applies():
    old = (ESTIMATION_SETTINGS["workday_start"], ESTIMATION_SETTINGS["workday_end"])
    try:
        configure_workday(8, 12)
        assert available_work_hours(_at(8, 0), _at(8, 23)) == pytest.approx(4.0)
        with pytest.raises(ValidationError):
            configure_workday(12, 8)
    finally:
        configure_workday(*old)


def test_minimum_personnel():
    assert minimum_personnel(20, 8) == 3
    assert minimum_personnel(0, 8) == 1
    assert minimum_personnel(5, 0) == 1
    with pytest.raises(ValidationError):
        minimum_personnel(-1, 8)


def test_personnel_scenarios():
    scenarios = personnel_scenarios(12, 2)
    assert [s.people for s in scenarios] == [2, 3, 4]
    assert [s.label for s in scenarios] == ["Tight", "Safe", "Buffer"]
    assert [s.hours_per_person for s in scenarios] == pytest.approx([6.0, 4.0, 3.0])
    assert personnel_scenarios(12, 0) == []


def test_working_window_and_task_hours():
    now = _at(8, 9)
    task = Task(task_id="t", title="T", created_at=now, due_at=_at(8, 13))
    assert working_window(task, now) == (now, _at(8, 13))
    assert task_available_hours(task, now) == pytest.approx(4.0)

    no_end = Task(task_id="u", title="U", created_at=now)
    assert working_window(no_end, now) is None
    assert task_available_hours(no_end, now) is None


def test_effort_and_productivity_conversions():
    assert effort_to_duration_seconds(3, 2) == 5400
    assert effort_to_duration_seconds(1) == 3600
    assert productivity_duration_seconds(100, 10, 2) == 18000
    assert productivity_personnel(100, 10, 2 * 3600) == 5


def test_invalid_numbers_raise_validation_error():
    with pytest.raises(ValidationError):
        effort_to_duration_seconds(-1)
    with pytest.raises(ValidationError):
        effort_to_duration_seconds(1, 0)
    with pytest.raises(ValidationError):
        productivity_duration_seconds(10, 0)
    with pytest.raises(ValidationError):
        productivity_personnel(10, 5, 0)


def test_entries_tracked_and_person_hours():
    closed = TimeEntry("e1", "t", _at(8, 9), _at(8, 11), _at(8, 9), personnel=3)
    running = TimeEntry("e2", "t", _at(8, 12), None, _at(8, 12))

    assert tracked_seconds([closed, running]) == 7200
    assert entry_person_hours(closed, _at(8, 15)) == pytest.approx(6.0)
    assert entry_person_hours(running, _at(8, 13)) == pytest.approx(1.0)


def test_format_seconds():
    assert format_seconds(9000) == "2h 30m"
    assert format_seconds(10800) == "3h"
    assert format_seconds(2700) == "45m"


def _estimate_tree() -> TaskGraph:
    """Root r with subtasks a (1h) and b; b has subtask c (30m)."""
    graph = TaskGraph()
    t0 = _at(8, 9)
    engine.insert_task(graph, Task(task_id="r", title="Root", created_at=t0, estimated_seconds=600))
    engine.add_subtask(graph, "r", Task(task_id="a", title="A", created_at=t0, estimated_seconds=3600))
    engine.add_subtask(graph, "r", Task(task_id="b", title="B", created_at=t0))
    engine.add_subtask(graph, "b", Task(task_id="c", title="C", created_at=t0, estimated_seconds=1800))
    return graph


def test_estimate_rolls_up_through_subtasks():
    graph = _estimate_tree()
    assert effective_estimate(graph, "c") == 1800
    assert effective_estimate(graph, "b") == 1800
    assert subtask_estimate_total(graph, "r") == 5400
    # the subtask total replaces the task's own figure
    assert effective_estimate(graph, "r") == 5400


def test_no_subtask_estimates_falls_back_to_own():
    graph = TaskGraph()
    engine.insert_task(graph, Task(task_id="r", title="Root", created_at=_at(8, 9), estimated_seconds=900))
    engine.add_subtask(graph, "r", Task(task_id="a", title="A", created_at=_at(8, 9)))
    assert subtask_estimate_total(graph, "r") is None
    assert effective_estimate(graph, "r") == 900


def test_custom_estimate_wins_and_feeds_parent():
    graph = _estimate_tree()
    engine.set_custom_estimate(graph, "b", 7200)
    assert effective_estimate(graph, "b") == 7200
    assert effective_estimate(graph, "r") == 3600 + 7200


def test_validate_custom_estimate():
    graph = _estimate_tree()
    validate_custom_estimate(graph, "r", 5400)
    validate_custom_estimate(graph, "c", 0)
    with pytest.raises(ValidationError, match=r"Custom estimate \(1h\) cannot be less than subtask estimates total \(1h 30m\)"):
        validate_custom_estimate(graph, "r", 3600)
    with pytest.raises(ValidationError):
        validate_custom_estimate(graph, "c", -60)
