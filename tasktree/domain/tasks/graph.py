from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from tasktree.domain.common.errors import NotFoundError
from tasktree.domain.tasks.models import Project, Task, TimeEntry


class TaskGraph:
    """
    Arena of tasks keyed by id, plus the projects and time entries they refer to.

    Relationships are stored as ids on the task records (parent_id, subtask_ids,
    depends_on). Records are frozen; a mutation replaces the stored record, so
    callers holding an older Task keep a consistent snapshot.
    """

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        projects: Iterable[Project] = (),
        entries: Iterable[TimeEntry] = (),
    ) -> None:
        self._tasks: Dict[str, Task] = {t.task_id: t for t in tasks}
        self._projects: Dict[str, Project] = {p.project_id: p for p in projects}
        self._entries: Dict[str, TimeEntry] = {e.entry_id: e for e in entries}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks.values()))

    def copy(self) -> "TaskGraph":
        return TaskGraph(self._tasks.values(), self._projects.values(), self._entries.values())

    # ----- tasks -----

    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def find(self, task_id: Optional[str]) -> Optional[Task]:
        if task_id is None:
            return None
        return self._tasks.get(task_id)

    def get(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found.")
        return task

    def put(self, task: Task) -> None:
        self._tasks[task.task_id] = task

    def discard(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)
        for entry_id in [e.entry_id for e in self._entries.values() if e.task_id == task_id]:
            del self._entries[entry_id]

    def parent(self, task_id: str) -> Optional[Task]:
        return self.find(self.get(task_id).parent_id)

    def subtasks(self, task_id: str) -> List[Task]:
        return [self._tasks[i] for i in self.get(task_id).subtask_ids if i in self._tasks]

    def dependencies(self, task_id: str) -> List[Task]:
        return [self._tasks[i] for i in self.get(task_id).depends_on if i in self._tasks]

    def roots(self) -> List[Task]:
        roots = [t for t in self._tasks.values() if t.parent_id is None]
        return sorted(roots, key=lambda t: (t.order, t.created_at))

    # ----- traversal -----

    def ancestors(self, task_id: str) -> List[Task]:
        """Parent chain, nearest first. Bounded by the task count."""
        chain: List[Task] = []
        current = self.get(task_id)
        for _ in range(len(self._tasks)):
            parent = self.find(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            current = parent
        return chain

    def descendants(self, task_id: str) -> List[Task]:
        """Whole subtree below task_id, depth first, in subtask order."""
        out: List[Task] = []
        seen = {task_id}
        stack = list(reversed(self.get(task_id).subtask_ids))
        while stack and len(out) < len(self._tasks):
            child_id = stack.pop()
            if child_id in seen:
                continue
            child = self._tasks.get(child_id)
            if child is None:
                continue
            seen.add(child_id)
            out.append(child)
            stack.extend(reversed(child.subtask_ids))
        return out

    def is_ancestor(self, candidate_id: str, of_id: str) -> bool:
        return any(t.task_id == candidate_id for t in self.ancestors(of_id))

    def is_descendant(self, candidate_id: str, of_id: str) -> bool:
        return any(t.task_id == candidate_id for t in self.descendants(of_id))

    # ----- projects -----

    def projects(self) -> List[Project]:
        return sorted(self._projects.values(), key=lambda p: (p.order, p.created_at))

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        if project_id is None:
            return None
        return self._projects.get(project_id)

    def put_project(self, project: Project) -> None:
        self._projects[project.project_id] = project

    # ----- time entries -----

    def entries(self) -> List[TimeEntry]:
        return list(self._entries.values())

    def entries_for(self, task_id: str) -> List[TimeEntry]:
        items = [e for e in self._entries.values() if e.task_id == task_id]
        return sorted(items, key=lambda e: e.start_at)

    def active_timer(self, task_id: str) -> Optional[TimeEntry]:
        for entry in self.entries_for(task_id):
            if entry.is_running:
                return entry
        return None

    def put_entry(self, entry: TimeEntry) -> None:
        self._entries[entry.entry_id] = entry
