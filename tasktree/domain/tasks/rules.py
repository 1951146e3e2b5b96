from __future__ import annotations

from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Set

from tasktree.domain.common.errors import (
    CircularMove,
    CycleDetected,
    DuplicateEdge,
    ValidationError,
)
from tasktree.domain.common.time import ensure_aware
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Task


def validate_title(title: str) -> None:
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    if len(title.strip()) > 200:
        raise ValidationError("Title is too long (max 200 chars).")


def validate_start_end(start_at: datetime, end_at: datetime) -> None:
    ensure_aware(start_at)
    ensure_aware(end_at)
    if end_at <= start_at:
        raise ValidationError("End time must be after start time.")


def validate_personnel(personnel: Optional[int]) -> None:
    if personnel is None:
        return
    if personnel < 1:
        raise ValidationError("Personnel count must be at least 1.")
    if personnel > 999:
        raise ValidationError("Personnel count is unrealistically large.")


def waits_on(graph: TaskGraph, task_id: str) -> List[str]:
    """
    Ids task_id has to wait for: its own dependencies plus the dependencies of
    its direct subtasks (an unmet subtask dependency blocks the parent).
    """
    task = graph.find(task_id)
    if task is None:
        return []
    out = list(task.depends_on)
    for sub_id in task.subtask_ids:
        sub = graph.find(sub_id)
        if sub is not None:
            out.extend(sub.depends_on)
    return out


def reaches(graph: TaskGraph, start_ids: Iterable[str], goal_ids: Set[str]) -> bool:
    """True if any goal is one of start_ids or is waited on, transitively, by them."""
    seen: set[str] = set()
    queue = deque(start_ids)
    while queue:
        current_id = queue.popleft()
        if current_id in goal_ids:
            return True
        if current_id in seen:
            continue
        seen.add(current_id)
        queue.extend(waits_on(graph, current_id))
    return False


def would_create_cycle(graph: TaskGraph, source: Task, target: Task) -> bool:
    """
    True if `source` depending on `target` closes a loop.

    The new edge makes `source` and `source`'s parent wait on `target`, so
    the loop closes when `target` already waits on either of them.
    """
    forbidden = {source.task_id}
    if source.parent_id is not None:
        forbidden.add(source.parent_id)
    return reaches(graph, [target.task_id], forbidden)


def validate_dependency(graph: TaskGraph, source: Task, target: Task) -> None:
    if source.task_id == target.task_id:
        raise CycleDetected("A task cannot depend on itself.", source.task_id, target.task_id)

    if target.task_id in source.depends_on:
        raise DuplicateEdge(
            f"'{source.title}' already depends on '{target.title}'.", source.task_id, target.task_id
        )

    if graph.is_ancestor(target.task_id, source.task_id):
        raise CycleDetected(
            f"'{source.title}' cannot depend on its parent '{target.title}'.", source.task_id, target.task_id
        )

    if graph.is_descendant(target.task_id, source.task_id):
        raise CycleDetected(
            f"'{source.title}' cannot depend on its own subtask '{target.title}'.", source.task_id, target.task_id
        )

    if would_create_cycle(graph, source, target):
        raise CycleDetected(
            f"'{target.title}' already waits on '{source.title}'; the dependency would be circular.",
            source.task_id,
            target.task_id,
        )


def validate_move(graph: TaskGraph, task: Task, new_parent: Task) -> None:
    if new_parent.task_id == task.task_id:
        raise CircularMove("A task cannot be its own subtask.", task.task_id, new_parent.task_id)

    subtree = [task] + graph.descendants(task.task_id)
    subtree_ids = {t.task_id for t in subtree}
    if new_parent.task_id in subtree_ids:
        raise CircularMove(
            f"'{new_parent.title}' is inside '{task.title}'; moving there would create a loop.",
            task.task_id,
            new_parent.task_id,
        )

    # After the move these become ancestors of the whole subtree.
    future_ancestors = [new_parent] + graph.ancestors(new_parent.task_id)
    future_ancestor_ids = {t.task_id for t in future_ancestors}

    for member in subtree:
        clash = future_ancestor_ids.intersection(member.depends_on)
        if clash:
            blocker = graph.get(next(iter(clash)))
            raise CircularMove(
                f"'{member.title}' depends on '{blocker.title}', which would become its parent.",
                task.task_id,
                new_parent.task_id,
            )

    for ancestor in future_ancestors:
        clash = subtree_ids.intersection(ancestor.depends_on)
        if clash:
            waited = graph.get(next(iter(clash)))
            raise CircularMove(
                f"'{ancestor.title}' depends on '{waited.title}', which would become its subtask.",
                task.task_id,
                new_parent.task_id,
            )

    # task's dependencies will block new_parent; none of them may wait on it
    # once the move is done
    trial = _moved_copy(graph, task, new_parent)
    for dep in graph.dependencies(task.task_id):
        if reaches(trial, [dep.task_id], {new_parent.task_id}):
            raise CircularMove(
                f"'{dep.title}' waits on '{new_parent.title}'; moving '{task.title}' there would deadlock.",
                task.task_id,
                new_parent.task_id,
            )


def _moved_copy(graph: TaskGraph, task: Task, new_parent: Task) -> TaskGraph:
    trial = graph.copy()
    old_parent = trial.find(task.parent_id)
    if old_parent is not None:
        trial.put(replace(old_parent, subtask_ids=tuple(i for i in old_parent.subtask_ids if i != task.task_id)))
    target = trial.get(new_parent.task_id)
    trial.put(replace(target, subtask_ids=target.subtask_ids + (task.task_id,)))
    trial.put(replace(task, parent_id=new_parent.task_id))
    return trial
