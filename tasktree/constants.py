"""
Constants for task status, project status and time tracking.
"""
from __future__ import annotations

# Derived task status (never stored)
TASK_STATUS_BLOCKED = "blocked"
TASK_STATUS_READY = "ready"
TASK_STATUS_IN_PROGRESS = "in_progress"
TASK_STATUS_COMPLETED = "completed"

TASK_STATUS_LABELS = {
    TASK_STATUS_BLOCKED: "Blocked",
    TASK_STATUS_READY: "Ready",
    TASK_STATUS_IN_PROGRESS: "In Progress",
    TASK_STATUS_COMPLETED: "Completed",
}

# Project status (stored in projects.status)
PROJECT_STATUS_PLANNING = "planning"
PROJECT_STATUS_IN_PROGRESS = "in_progress"
PROJECT_STATUS_ON_HOLD = "on_hold"
PROJECT_STATUS_COMPLETED = "completed"

PROJECT_STATUSES = (
    PROJECT_STATUS_PLANNING,
    PROJECT_STATUS_IN_PROGRESS,
    PROJECT_STATUS_ON_HOLD,
    PROJECT_STATUS_COMPLETED,
)

DEFAULT_TASK_PRIORITY = 2
DEFAULT_PROJECT_COLOR = "blue"

# Workday used for available-hours calculations (local hours)
DEFAULT_WORKDAY_START = 7
DEFAULT_WORKDAY_END = 15
