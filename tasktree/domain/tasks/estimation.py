"""
Deterministic effort, crew and working-hours arithmetic for tasks.

Covers:
- Available working hours between two moments (fixed daily workday)
- Effort (person-hours) to duration, and minimum crew size
- Quantity/productivity-rate conversions
- Time entry durations and person-hours
- Estimate roll-up from subtasks and custom estimate checks

All tunables live in one place.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from tasktree.constants import DEFAULT_WORKDAY_END, DEFAULT_WORKDAY_START
from tasktree.domain.common.errors import ValidationError
from tasktree.domain.common.time import ensure_aware
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Task, TimeEntry


ESTIMATION_SETTINGS = {
    "workday_start": DEFAULT_WORKDAY_START,  # local hour work starts
    "workday_end": DEFAULT_WORKDAY_END,  # local hour work ends
    "minimum_available_hours": 1.0,  # floor for available_work_hours
    "scenario_labels": ("Tight", "Safe", "Buffer"),
}


def configure_workday(start_hour: int, end_hour: int) -> None:
    if not 0 <= start_hour < end_hour <= 24:
        raise ValidationError("Workday must satisfy 0 <= start < end <= 24.")
    ESTIMATION_SETTINGS["workday_start"] = start_hour
    ESTIMATION_SETTINGS["workday_end"] = end_hour


@dataclass(frozen=True)
class PersonnelScenario:
    people: int
    hours_per_person: float
    label: str


def _hour_of(dt: datetime) -> float:
    return dt.hour + dt.minute / 60.0


def available_work_hours(
    start: datetime,
    end: datetime,
    workday_start: Optional[int] = None,
    workday_end: Optional[int] = None,
) -> float:
    """
    Working hours between start and end.

    Rules:
    - Full days count the whole workday
    - The first day counts from max(start, workday start) to workday end
    - The last day counts from workday start to min(end, workday end)
    - The result is never below the configured minimum (1 hour)

    Args:
        start: Aware datetime when work may begin
        end: Aware datetime by which work must be done
        workday_start: Override for the first working hour
        workday_end: Override for the last working hour

    Returns:
        Available hours as a float
    """
    ensure_aware(start)
    ensure_aware(end)
    ws = ESTIMATION_SETTINGS["workday_start"] if workday_start is None else workday_start
    we = ESTIMATION_SETTINGS["workday_end"] if workday_end is None else workday_end
    floor = ESTIMATION_SETTINGS["minimum_available_hours"]
    if we <= ws:
        raise ValidationError("Workday must end after it starts.")

    if end <= start:
        return floor

    # evaluate both ends on the same wall clock
    end = end.astimezone(start.tzinfo)
    first_day = start.date()
    last_day = end.date()

    total = 0.0
    day = first_day
    while day <= last_day:
        if day == first_day:
            start_hour = _hour_of(start)
            if start_hour < we:
                begin = max(start_hour, ws)
                finish = min(_hour_of(end), we) if day == last_day else we
                total += max(finish - begin, 0.0)
        elif day == last_day:
            total += max(min(_hour_of(end), we) - ws, 0.0)
        else:
            total += we - ws
        day += timedelta(days=1)

    return max(total, floor)


def working_window(task: Task, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """(start, end) of the task's working window, or None when it has no usable end."""
    end = task.end_at or task.due_at
    if end is None:
        return None
    start = task.start_at or now
    if start >= end:
        return None
    return start, end


def task_available_hours(task: Task, now: datetime) -> Optional[float]:
    window = working_window(task, now)
    if window is None:
        return None
    return available_work_hours(*window)


def minimum_personnel(effort_hours: float, available_hours: float) -> int:
    """Smallest crew that fits effort_hours into available_hours. Always at least 1."""
    if effort_hours < 0:
        raise ValidationError("Effort cannot be negative.")
    if available_hours <= 0:
        return 1
    return max(math.ceil(effort_hours / available_hours), 1)


def personnel_scenarios(effort_hours: float, minimum: int) -> List[PersonnelScenario]:
    if minimum <= 0:
        return []
    labels = ESTIMATION_SETTINGS["scenario_labels"]
    return [
        PersonnelScenario(people=minimum + i, hours_per_person=effort_hours / (minimum + i), label=label)
        for i, label in enumerate(labels)
    ]


def effort_to_duration_seconds(effort_hours: float, personnel: Optional[int] = None) -> int:
    """Wall-clock seconds for effort_hours of work split across personnel (default 1)."""
    if effort_hours < 0:
        raise ValidationError("Effort cannot be negative.")
    people = 1 if personnel is None else personnel
    if people < 1:
        raise ValidationError("Personnel count must be at least 1.")
    return int(effort_hours / people * 3600)


def productivity_duration_seconds(quantity: float, rate: float, personnel: int = 1) -> int:
    """
    Duration needed for quantity units at rate units per person-hour.

    Args:
        quantity: Units of work to complete
        rate: Units one person completes per hour
        personnel: Crew size

    Returns:
        Duration in whole seconds
    """
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative.")
    if rate <= 0:
        raise ValidationError("Productivity rate must be positive.")
    if personnel < 1:
        raise ValidationError("Personnel count must be at least 1.")
    return int(quantity / (rate * personnel) * 3600)


def productivity_personnel(quantity: float, rate: float, duration_seconds: int) -> int:
    """Crew size needed to finish quantity units within duration_seconds. At least 1."""
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative.")
    if rate <= 0:
        raise ValidationError("Productivity rate must be positive.")
    if duration_seconds <= 0:
        raise ValidationError("Duration must be positive.")
    hours = duration_seconds / 3600.0
    return max(math.ceil(quantity / (rate * hours)), 1)


def entry_duration_seconds(entry: TimeEntry, now: datetime) -> float:
    """Length of the entry; a running entry counts up to now."""
    end = entry.end_at or now
    return (end - entry.start_at).total_seconds()


def entry_person_hours(entry: TimeEntry, now: datetime) -> float:
    return entry_duration_seconds(entry, now) / 3600.0 * entry.personnel


def tracked_seconds(entries: Iterable[TimeEntry]) -> int:
    """Total closed time; running entries are ignored."""
    total = 0
    for entry in entries:
        if entry.end_at is None:
            continue
        total += int((entry.end_at - entry.start_at).total_seconds())
    return total


def format_seconds(seconds: int) -> str:
    """'2h 30m', '3h', '45m'."""
    minutes = max(int(seconds), 0) // 60
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


def subtask_estimate_total(graph: TaskGraph, task_id: str) -> Optional[int]:
    """Sum of the direct subtasks' effective estimates; None when there is nothing to sum."""
    total = sum(effective_estimate(graph, sub.task_id) or 0 for sub in graph.subtasks(task_id))
    return total if total > 0 else None


def effective_estimate(graph: TaskGraph, task_id: str) -> Optional[int]:
    """A custom estimate wins; otherwise the subtask total, falling back to the task's own estimate."""
    task = graph.get(task_id)
    if task.has_custom_estimate:
        return task.estimated_seconds
    total = subtask_estimate_total(graph, task_id)
    return total if total is not None else task.estimated_seconds


def validate_custom_estimate(graph: TaskGraph, task_id: str, proposed_seconds: int) -> None:
    if proposed_seconds < 0:
        raise ValidationError("Estimate cannot be negative.")
    total = subtask_estimate_total(graph, task_id)
    if total is not None and proposed_seconds < total:
        raise ValidationError(
            f"Custom estimate ({format_seconds(proposed_seconds)}) cannot be less than "
            f"subtask estimates total ({format_seconds(total)})."
        )
