from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Tuple

TaskStatus = Literal["blocked", "ready", "in_progress", "completed"]
ProjectStatus = Literal["planning", "in_progress", "on_hold", "completed"]


@dataclass(frozen=True)
class Task:
    task_id: str
    title: str
    created_at: datetime
    priority: int = 2
    completed_at: Optional[datetime] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    notes: Optional[str] = None
    estimated_seconds: Optional[int] = None
    has_custom_estimate: bool = False  # estimated_seconds overrides the subtask total
    effort_hours: Optional[float] = None
    expected_personnel: Optional[int] = None
    expected_quantity: Optional[float] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    productivity_rate: Optional[float] = None  # units per person-hour
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    order: int = 0
    project_id: Optional[str] = None
    # parent_id is the back-reference; the parent's subtask_ids is authoritative
    parent_id: Optional[str] = None
    subtask_ids: Tuple[str, ...] = ()
    depends_on: Tuple[str, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True)
class Project:
    project_id: str
    title: str
    created_at: datetime
    color: str = "blue"
    status: ProjectStatus = "planning"
    start_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    order: int = 0


@dataclass(frozen=True)
class TimeEntry:
    entry_id: str
    task_id: str
    start_at: datetime
    end_at: Optional[datetime]
    created_at: datetime
    personnel: int = 1

    @property
    def is_running(self) -> bool:
        return self.end_at is None


@dataclass(frozen=True)
class BlockingPair:
    """A direct subtask of some task waiting on an incomplete dependency."""

    subtask: Task
    dependency: Task


@dataclass(frozen=True)
class TaskOverview:
    task: Task
    status: TaskStatus
    parent: Optional[Task]
    subtasks: Tuple[Task, ...]
    dependencies: Tuple[Task, ...]
    blocking: Tuple[Task, ...]
    blocking_subtasks: Tuple[BlockingPair, ...]
    blocked_by: Tuple[Task, ...]
    reasons: Tuple[str, ...]
    active_timer: Optional[TimeEntry]
    tracked_seconds: int
    project: Optional[Project] = None
    candidates: Tuple[Task, ...] = field(default_factory=tuple)
    # candidates add_dependency would accept right now
    addable: Tuple[Task, ...] = field(default_factory=tuple)
    estimate_seconds: Optional[int] = None
