from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, List, Optional

from tasktree.constants import DEFAULT_PROJECT_COLOR, DEFAULT_TASK_PRIORITY, PROJECT_STATUSES
from tasktree.domain.common.errors import (
    ConflictError,
    GraphError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from tasktree.domain.tasks import engine
from tasktree.domain.tasks.estimation import effective_estimate, tracked_seconds
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Project, Task, TaskOverview, TimeEntry
from tasktree.domain.tasks.ports import Clock, IdGenerator, TaskRepository
from tasktree.domain.tasks.rules import validate_personnel, validate_start_end, validate_title
from tasktree.domain.tasks.status import (
    blocked_by_tasks,
    blocking_dependencies,
    blocking_reasons,
    blocking_subtask_dependencies,
    can_complete,
    can_start_work,
    derive_status,
)

logger = logging.getLogger(__name__)


class TaskService:
    """
    Task graph business logic. No aiogram. No sqlite.

    Every mutation loads a fresh graph, applies one validated engine operation
    and commits the graph. Validation errors propagate before anything is
    written; a failed commit surfaces as PersistenceFailure.
    """

    def __init__(self, repo: TaskRepository, clock: Clock, ids: IdGenerator) -> None:
        self._repo = repo
        self._clock = clock
        self._ids = ids

    async def graph(self) -> TaskGraph:
        return await self._repo.load()

    async def _commit(self, graph: TaskGraph, action: str, **fields: Any) -> None:
        try:
            await self._repo.save(graph)
        except Exception as e:
            logger.error("Commit failed: %s %s", action, fields, exc_info=True)
            raise PersistenceFailure(f"Could not save changes ({action}).", graph) from e
        logger.info("Committed %s %s", action, fields)

    # ----- tasks -----

    def _new_task(self, title: str, **attrs: Any) -> Task:
        validate_title(title)
        validate_personnel(attrs.get("expected_personnel"))
        start_at = attrs.get("start_at")
        end_at = attrs.get("end_at")
        if start_at is not None and end_at is not None:
            validate_start_end(start_at, end_at)
        attrs.setdefault("priority", DEFAULT_TASK_PRIORITY)
        return Task(task_id=self._ids.new_id(), title=title.strip(), created_at=self._clock.now(), **attrs)

    async def create_task(self, title: str, **attrs: Any) -> Task:
        graph = await self._repo.load()
        project_id = attrs.get("project_id")
        if project_id is not None and graph.project(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found.")
        created = engine.insert_task(graph, self._new_task(title, **attrs))
        await self._commit(graph, "create_task", task_id=created.task_id)
        return created

    async def add_subtask(self, parent_id: str, title: str, **attrs: Any) -> Task:
        graph = await self._repo.load()
        attrs.pop("project_id", None)
        created = engine.add_subtask(graph, parent_id, self._new_task(title, **attrs))
        await self._commit(graph, "add_subtask", task_id=created.task_id, parent_id=parent_id)
        return created

    async def rename_task(self, task_id: str, title: str) -> Task:
        validate_title(title)
        graph = await self._repo.load()
        updated = replace(graph.get(task_id), title=title.strip())
        graph.put(updated)
        await self._commit(graph, "rename_task", task_id=task_id)
        return updated

    async def remove_task(self, task_id: str) -> List[str]:
        graph = await self._repo.load()
        removed = engine.remove_task(graph, task_id)
        await self._commit(graph, "remove_task", task_id=task_id, removed=len(removed))
        return removed

    # ----- dependency graph -----

    async def add_dependency(self, from_id: str, to_id: str) -> Task:
        graph = await self._repo.load()
        try:
            updated = engine.add_dependency(graph, from_id, to_id)
        except GraphError as e:
            logger.debug("Rejected dependency %s -> %s: %s", from_id, to_id, e)
            raise
        await self._commit(graph, "add_dependency", from_id=from_id, to_id=to_id)
        return updated

    async def remove_dependency(self, from_id: str, to_id: str) -> Task:
        graph = await self._repo.load()
        before = graph.get(from_id)
        updated = engine.remove_dependency(graph, from_id, to_id)
        if updated is before:
            return updated
        await self._commit(graph, "remove_dependency", from_id=from_id, to_id=to_id)
        return updated

    async def move_subtask(self, task_id: str, new_parent_id: str) -> Task:
        graph = await self._repo.load()
        try:
            moved = engine.move_subtask(graph, task_id, new_parent_id)
        except GraphError as e:
            logger.debug("Rejected move %s -> %s: %s", task_id, new_parent_id, e)
            raise
        await self._commit(graph, "move_subtask", task_id=task_id, new_parent_id=new_parent_id)
        return moved

    async def detach_subtask(self, task_id: str) -> Task:
        graph = await self._repo.load()
        detached = engine.detach_subtask(graph, task_id)
        await self._commit(graph, "detach_subtask", task_id=task_id)
        return detached

    async def duplicate_task(self, task_id: str) -> Task:
        graph = await self._repo.load()
        validate_title(f"{graph.get(task_id).title} (Copy)")
        copy = engine.duplicate_task(graph, task_id, self._ids.new_id(), self._clock.now())
        await self._commit(graph, "duplicate_task", task_id=task_id, copy_id=copy.task_id)
        return copy

    async def reorder_subtasks(self, parent_id: Optional[str], ordered_ids: List[str]) -> List[Task]:
        graph = await self._repo.load()
        reordered = engine.reorder_subtasks(graph, parent_id, ordered_ids)
        await self._commit(graph, "reorder_subtasks", parent_id=parent_id, count=len(reordered))
        return reordered

    async def shift_task(self, task_id: str, delta: int) -> Task:
        """Move a task delta places among its siblings, clamped to the ends."""
        graph = await self._repo.load()
        task = graph.get(task_id)
        if task.parent_id is None:
            ids = [t.task_id for t in graph.roots()]
        else:
            ids = list(graph.get(task.parent_id).subtask_ids)
        index = ids.index(task_id)
        target = min(max(index + delta, 0), len(ids) - 1)
        if target == index:
            return task
        ids.insert(target, ids.pop(index))
        engine.reorder_subtasks(graph, task.parent_id, ids)
        await self._commit(graph, "shift_task", task_id=task_id, delta=delta)
        return graph.get(task_id)

    # ----- estimates -----

    async def set_estimate(self, task_id: str, seconds: int) -> Task:
        graph = await self._repo.load()
        try:
            updated = engine.set_custom_estimate(graph, task_id, seconds)
        except ValidationError as e:
            logger.debug("Rejected estimate %s for %s: %s", seconds, task_id, e)
            raise
        await self._commit(graph, "set_estimate", task_id=task_id, seconds=seconds)
        return updated

    async def clear_custom_estimate(self, task_id: str) -> Task:
        graph = await self._repo.load()
        before = graph.get(task_id)
        updated = engine.clear_custom_estimate(graph, task_id)
        if updated is before:
            return updated
        await self._commit(graph, "clear_custom_estimate", task_id=task_id)
        return updated

    # ----- completion -----

    async def complete_task(self, task_id: str, force: bool = False) -> Task:
        graph = await self._repo.load()
        task = graph.get(task_id)
        if task.is_completed:
            return task
        if not force and not can_complete(graph, task_id):
            reasons = "; ".join(blocking_reasons(graph, task_id))
            raise ConflictError(f"'{task.title}' is blocked. {reasons}".strip())

        now = self._clock.now()
        running = graph.active_timer(task_id)
        if running is not None:
            graph.put_entry(replace(running, end_at=now))

        completed = replace(task, completed_at=now)
        graph.put(completed)
        await self._commit(graph, "complete_task", task_id=task_id, forced=force)
        return completed

    async def reopen_task(self, task_id: str) -> Task:
        graph = await self._repo.load()
        task = graph.get(task_id)
        if not task.is_completed:
            return task
        reopened = replace(task, completed_at=None, is_archived=False, archived_at=None)
        graph.put(reopened)
        # an archived subtree comes back with it
        for member in graph.descendants(task_id):
            if member.is_archived:
                graph.put(replace(member, is_archived=False, archived_at=None))
        await self._commit(graph, "reopen_task", task_id=task_id)
        return reopened

    async def archive_task(self, task_id: str) -> List[Task]:
        """Archive a completed task together with its whole subtree."""
        graph = await self._repo.load()
        task = graph.get(task_id)
        if not task.is_completed:
            raise ConflictError("Only completed tasks can be archived.")
        now = self._clock.now()
        archived = []
        for member in [task] + graph.descendants(task_id):
            updated = replace(member, is_archived=True, archived_at=now)
            graph.put(updated)
            archived.append(updated)
        await self._commit(graph, "archive_task", task_id=task_id, count=len(archived))
        return archived

    async def unarchive_task(self, task_id: str) -> List[Task]:
        graph = await self._repo.load()
        restored = []
        for member in [graph.get(task_id)] + graph.descendants(task_id):
            updated = replace(member, is_archived=False, archived_at=None)
            graph.put(updated)
            restored.append(updated)
        await self._commit(graph, "unarchive_task", task_id=task_id, count=len(restored))
        return restored

    # ----- time tracking -----

    async def start_timer(self, task_id: str, personnel: Optional[int] = None, force: bool = False) -> TimeEntry:
        graph = await self._repo.load()
        task = graph.get(task_id)
        if graph.active_timer(task_id) is not None:
            raise ConflictError("Timer is already running. Stop it before starting a new one.")
        if not force and not can_start_work(graph, task_id):
            raise ConflictError(f"'{task.title}' cannot be started right now.")

        people = personnel if personnel is not None else (task.expected_personnel or 1)
        validate_personnel(people)
        now = self._clock.now()
        entry = TimeEntry(
            entry_id=self._ids.new_id(),
            task_id=task_id,
            start_at=now,
            end_at=None,
            created_at=now,
            personnel=people,
        )
        graph.put_entry(entry)
        await self._commit(graph, "start_timer", task_id=task_id, entry_id=entry.entry_id)
        return entry

    async def stop_timer(self, task_id: str) -> TimeEntry:
        graph = await self._repo.load()
        running = graph.active_timer(task_id)
        if running is None:
            raise NotFoundError("No active timer to stop.")
        closed = replace(running, end_at=self._clock.now())
        graph.put_entry(closed)
        await self._commit(graph, "stop_timer", task_id=task_id, entry_id=closed.entry_id)
        return closed

    async def add_manual_entry(
        self, task_id: str, start_at: datetime, end_at: datetime, personnel: int = 1
    ) -> TimeEntry:
        validate_start_end(start_at, end_at)
        validate_personnel(personnel)
        graph = await self._repo.load()
        graph.get(task_id)
        entry = TimeEntry(
            entry_id=self._ids.new_id(),
            task_id=task_id,
            start_at=start_at,
            end_at=end_at,
            created_at=self._clock.now(),
            personnel=personnel,
        )
        graph.put_entry(entry)
        await self._commit(graph, "add_manual_entry", task_id=task_id, entry_id=entry.entry_id)
        return entry

    # ----- projects -----

    async def create_project(
        self,
        title: str,
        color: str = DEFAULT_PROJECT_COLOR,
        start_at: Optional[datetime] = None,
        due_at: Optional[datetime] = None,
    ) -> Project:
        validate_title(title)
        if start_at is not None and due_at is not None:
            validate_start_end(start_at, due_at)
        graph = await self._repo.load()
        order = max((p.order for p in graph.projects()), default=-1) + 1
        project = Project(
            project_id=self._ids.new_id(),
            title=title.strip(),
            created_at=self._clock.now(),
            color=color,
            start_at=start_at,
            due_at=due_at,
            order=order,
        )
        graph.put_project(project)
        await self._commit(graph, "create_project", project_id=project.project_id)
        return project

    async def set_project_status(self, project_id: str, status: str) -> Project:
        if status not in PROJECT_STATUSES:
            raise ValidationError(f"Unknown project status: {status}")
        graph = await self._repo.load()
        project = graph.project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found.")
        updated = replace(project, status=status)
        graph.put_project(updated)
        await self._commit(graph, "set_project_status", project_id=project_id, status=status)
        return updated

    # ----- read models -----

    async def task_overview(self, task_id: str) -> TaskOverview:
        graph = await self._repo.load()
        return build_overview(graph, task_id)

    async def candidates(self, task_id: str) -> List[Task]:
        graph = await self._repo.load()
        return engine.available_dependency_candidates(graph, task_id)

    async def addable_candidates(self, task_id: str) -> List[Task]:
        graph = await self._repo.load()
        return engine.addable_dependencies(graph, task_id)

    async def parent_candidates(self, task_id: str) -> List[Task]:
        graph = await self._repo.load()
        return engine.available_parent_candidates(graph, task_id)


def build_overview(graph: TaskGraph, task_id: str) -> TaskOverview:
    task = graph.get(task_id)
    return TaskOverview(
        task=task,
        status=derive_status(graph, task_id),
        parent=graph.parent(task_id),
        subtasks=tuple(graph.subtasks(task_id)),
        dependencies=tuple(graph.dependencies(task_id)),
        blocking=tuple(blocking_dependencies(graph, task_id)),
        blocking_subtasks=tuple(blocking_subtask_dependencies(graph, task_id)),
        blocked_by=tuple(blocked_by_tasks(graph, task_id)),
        reasons=tuple(blocking_reasons(graph, task_id)),
        active_timer=graph.active_timer(task_id),
        tracked_seconds=tracked_seconds(graph.entries_for(task_id)),
        project=graph.project(task.project_id),
        candidates=tuple(engine.available_dependency_candidates(graph, task_id)),
        addable=tuple(engine.addable_dependencies(graph, task_id)),
        estimate_seconds=effective_estimate(graph, task_id),
    )
