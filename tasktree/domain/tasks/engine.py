"""
Validated mutations of the subtask tree and the dependency graph.

Every function validates first and only then writes to the graph, so a
rejected call leaves the graph exactly as it was. Callers persist the graph
afterwards; nothing here knows about storage or the UI.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence

from tasktree.domain.common.errors import ConflictError, GraphError, ValidationError
from tasktree.domain.tasks.estimation import validate_custom_estimate
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Task
from tasktree.domain.tasks.rules import validate_dependency, validate_move


def next_order(graph: TaskGraph, parent_id: Optional[str]) -> int:
    """Next free order value among the children of parent_id (top level when None)."""
    if parent_id is None:
        siblings = graph.roots()
    else:
        siblings = graph.subtasks(parent_id)
    if not siblings:
        return 0
    return max(t.order for t in siblings) + 1


def add_dependency(graph: TaskGraph, from_id: str, to_id: str) -> Task:
    source = graph.get(from_id)
    target = graph.get(to_id)
    validate_dependency(graph, source, target)

    updated = replace(source, depends_on=source.depends_on + (target.task_id,))
    graph.put(updated)
    return updated


def remove_dependency(graph: TaskGraph, from_id: str, to_id: str) -> Task:
    source = graph.get(from_id)
    if to_id not in source.depends_on:
        return source
    updated = replace(source, depends_on=tuple(i for i in source.depends_on if i != to_id))
    graph.put(updated)
    return updated


def available_dependency_candidates(graph: TaskGraph, task_id: str) -> List[Task]:
    """
    Tasks the user may pick as a new dependency of task_id.

    Excludes the task itself, its current dependencies, its ancestors and its
    descendants. Recomputed on every call.
    """
    task = graph.get(task_id)
    excluded = {task.task_id}
    excluded.update(task.depends_on)
    excluded.update(t.task_id for t in graph.ancestors(task_id))
    excluded.update(t.task_id for t in graph.descendants(task_id))
    return [t for t in graph if t.task_id not in excluded]


def addable_dependencies(graph: TaskGraph, task_id: str) -> List[Task]:
    """Candidates add_dependency would accept right now."""
    source = graph.get(task_id)
    out: List[Task] = []
    for candidate in available_dependency_candidates(graph, task_id):
        try:
            validate_dependency(graph, source, candidate)
        except GraphError:
            continue
        out.append(candidate)
    return out


def available_parent_candidates(graph: TaskGraph, task_id: str) -> List[Task]:
    """Tasks task_id could be moved under: not itself, not its parent, not inside its subtree."""
    task = graph.get(task_id)
    excluded = {task.task_id}
    if task.parent_id is not None:
        excluded.add(task.parent_id)
    excluded.update(t.task_id for t in graph.descendants(task_id))
    return [t for t in graph if t.task_id not in excluded and not t.is_archived]


def move_subtask(graph: TaskGraph, task_id: str, new_parent_id: str) -> Task:
    task = graph.get(task_id)
    new_parent = graph.get(new_parent_id)
    validate_move(graph, task, new_parent)

    old_parent = graph.find(task.parent_id)
    if old_parent is not None:
        graph.put(replace(old_parent, subtask_ids=tuple(i for i in old_parent.subtask_ids if i != task_id)))

    # re-read: old and new parent may be the same record
    new_parent = graph.get(new_parent_id)
    order = next_order(graph, new_parent_id)
    graph.put(replace(new_parent, subtask_ids=new_parent.subtask_ids + (task_id,)))

    moved = replace(task, parent_id=new_parent_id, project_id=new_parent.project_id, order=order)
    graph.put(moved)
    return moved


def detach_subtask(graph: TaskGraph, task_id: str) -> Task:
    """Promote a subtask to a top-level task. Dependencies are kept."""
    task = graph.get(task_id)
    parent = graph.find(task.parent_id)
    if parent is None:
        return task
    graph.put(replace(parent, subtask_ids=tuple(i for i in parent.subtask_ids if i != task_id)))
    detached = replace(task, parent_id=None, order=next_order(graph, None))
    graph.put(detached)
    return detached


def insert_task(graph: TaskGraph, task: Task, parent_id: Optional[str] = None) -> Task:
    """
    Add a new task to the graph, as the last child of parent_id when given.

    A subtask inherits its parent's project.
    """
    if task.task_id in graph:
        raise ConflictError(f"Task {task.task_id} already exists.")
    if task.subtask_ids or task.depends_on:
        raise ConflictError("New tasks start without subtasks or dependencies.")

    if parent_id is None:
        created = replace(task, parent_id=None, order=next_order(graph, None))
        graph.put(created)
        return created

    parent = graph.get(parent_id)
    created = replace(
        task,
        parent_id=parent.task_id,
        project_id=parent.project_id,
        order=next_order(graph, parent.task_id),
    )
    graph.put(replace(parent, subtask_ids=parent.subtask_ids + (created.task_id,)))
    graph.put(created)
    return created


def remove_task(graph: TaskGraph, task_id: str) -> List[str]:
    """
    Delete a task together with its subtree.

    Every dependency edge pointing at a removed task is dropped in the same
    step, so no dangling ids survive. Returns the removed ids.
    """
    task = graph.get(task_id)
    removed = [task.task_id] + [t.task_id for t in graph.descendants(task_id)]
    removed_set = set(removed)

    parent = graph.find(task.parent_id)
    if parent is not None:
        graph.put(replace(parent, subtask_ids=tuple(i for i in parent.subtask_ids if i != task_id)))

    for rid in removed:
        graph.discard(rid)

    for other in graph.tasks():
        if removed_set.intersection(other.depends_on):
            graph.put(replace(other, depends_on=tuple(i for i in other.depends_on if i not in removed_set)))

    return removed


def add_subtask(graph: TaskGraph, parent_id: str, task: Task) -> Task:
    return insert_task(graph, task, parent_id=parent_id)


def _siblings(graph: TaskGraph, parent_id: Optional[str]) -> List[Task]:
    if parent_id is None:
        return graph.roots()
    return graph.subtasks(parent_id)


def duplicate_task(graph: TaskGraph, task_id: str, new_id: str, now: datetime) -> Task:
    """
    Copy a task into the slot right after it, at the same level.

    The copy keeps the task's own fields but starts with no dependencies, no
    subtasks and no completion. Later siblings move down one place.
    """
    original = graph.get(task_id)
    if new_id in graph:
        raise ConflictError(f"Task {new_id} already exists.")

    for sibling in _siblings(graph, original.parent_id):
        if sibling.task_id != original.task_id and sibling.order > original.order:
            graph.put(replace(sibling, order=sibling.order + 1))

    copy = replace(
        original,
        task_id=new_id,
        title=f"{original.title} (Copy)",
        created_at=now,
        completed_at=None,
        is_archived=False,
        archived_at=None,
        order=original.order + 1,
        subtask_ids=(),
        depends_on=(),
    )

    parent = graph.find(original.parent_id)
    if parent is not None:
        ids = list(parent.subtask_ids)
        ids.insert(ids.index(original.task_id) + 1, new_id)
        graph.put(replace(parent, subtask_ids=tuple(ids)))
    graph.put(copy)
    return copy


def reorder_subtasks(graph: TaskGraph, parent_id: Optional[str], ordered_ids: Sequence[str]) -> List[Task]:
    """Set order = position for the children of parent_id (top level when None)."""
    siblings = _siblings(graph, parent_id)
    if len(ordered_ids) != len(siblings) or set(ordered_ids) != {t.task_id for t in siblings}:
        raise ValidationError("New order must list every task at that level exactly once.")

    out: List[Task] = []
    for index, tid in enumerate(ordered_ids):
        updated = replace(graph.get(tid), order=index)
        graph.put(updated)
        out.append(updated)

    parent = graph.find(parent_id)
    if parent is not None:
        graph.put(replace(parent, subtask_ids=tuple(ordered_ids)))
    return out


def set_custom_estimate(graph: TaskGraph, task_id: str, seconds: int) -> Task:
    task = graph.get(task_id)
    validate_custom_estimate(graph, task_id, seconds)
    updated = replace(task, estimated_seconds=seconds, has_custom_estimate=True)
    graph.put(updated)
    return updated


def clear_custom_estimate(graph: TaskGraph, task_id: str) -> Task:
    """Let the subtask total drive the estimate again."""
    task = graph.get(task_id)
    if not task.has_custom_estimate:
        return task
    updated = replace(task, has_custom_estimate=False)
    graph.put(updated)
    return updated
