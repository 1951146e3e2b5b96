"""
Status and blocking derivations.

Nothing here is cached or stored: every function reads the graph it is given
and returns a fresh answer, so the result can never drift from its inputs.
"""
from __future__ import annotations

from typing import List

from tasktree.constants import (
    TASK_STATUS_BLOCKED,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_IN_PROGRESS,
    TASK_STATUS_READY,
)
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import BlockingPair, Task, TaskStatus


def blocking_dependencies(graph: TaskGraph, task_id: str) -> List[Task]:
    """Incomplete direct dependencies, in the order they were added."""
    return [dep for dep in graph.dependencies(task_id) if not dep.is_completed]


def blocking_subtask_dependencies(graph: TaskGraph, task_id: str) -> List[BlockingPair]:
    """
    (subtask, dependency) for each direct subtask and each of its incomplete
    dependencies. One level only; grandchildren are reported by their own parent.
    """
    pairs: List[BlockingPair] = []
    for sub in graph.subtasks(task_id):
        for dep in graph.dependencies(sub.task_id):
            if not dep.is_completed:
                pairs.append(BlockingPair(subtask=sub, dependency=dep))
    return pairs


def derive_status(graph: TaskGraph, task_id: str) -> TaskStatus:
    task = graph.get(task_id)
    if task.is_completed:
        return TASK_STATUS_COMPLETED
    if blocking_dependencies(graph, task_id) or blocking_subtask_dependencies(graph, task_id):
        return TASK_STATUS_BLOCKED
    if graph.active_timer(task_id) is not None:
        return TASK_STATUS_IN_PROGRESS
    return TASK_STATUS_READY


def blocked_by_tasks(graph: TaskGraph, task_id: str) -> List[Task]:
    """Incomplete tasks currently waiting on task_id."""
    graph.get(task_id)
    return [t for t in graph if task_id in t.depends_on and not t.is_completed]


def blocking_reasons(graph: TaskGraph, task_id: str) -> List[str]:
    reasons = [f"Waiting on: {dep.title}" for dep in blocking_dependencies(graph, task_id)]
    for pair in blocking_subtask_dependencies(graph, task_id):
        reasons.append(f"Subtask '{pair.subtask.title}' blocked by: {pair.dependency.title}")
    return reasons


def can_complete(graph: TaskGraph, task_id: str) -> bool:
    return derive_status(graph, task_id) in (TASK_STATUS_READY, TASK_STATUS_IN_PROGRESS)


def can_start_work(graph: TaskGraph, task_id: str) -> bool:
    return derive_status(graph, task_id) not in (TASK_STATUS_BLOCKED, TASK_STATUS_COMPLETED)


def total_block_count(graph: TaskGraph, task_id: str) -> int:
    """Incomplete dependencies of the task and of every task in its subtree."""
    members = [graph.get(task_id)] + graph.descendants(task_id)
    return sum(len(blocking_dependencies(graph, t.task_id)) for t in members)
