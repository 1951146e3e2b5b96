from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List

from tasktree.domain.common.time import from_iso, from_iso_opt, to_iso, to_iso_opt
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Project, Task, TimeEntry
from tasktree.domain.tasks.ports import TaskRepository
from tasktree.infra.db.connection import Database

logger = logging.getLogger(__name__)

_TASK_COLUMNS = (
    "task_id, title, priority, created_at, completed_at, start_at, end_at, due_at, notes, "
    "estimated_seconds, has_custom_estimate, effort_hours, expected_personnel, expected_quantity, quantity, unit, "
    "productivity_rate, is_archived, archived_at, sort_order, project_id, parent_id"
)


class TaskSqliteRepo(TaskRepository):
    """
    Stores the whole task universe. save() rewrites every table inside one
    transaction, so a failed commit leaves the previous state intact.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def load(self) -> TaskGraph:
        project_rows = await self._db.fetchall("SELECT * FROM projects ORDER BY sort_order, created_at;")
        task_rows = await self._db.fetchall(f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY sort_order, created_at;")
        subtask_rows = await self._db.fetchall(
            "SELECT parent_id, child_id FROM task_subtasks ORDER BY parent_id, position;"
        )
        dep_rows = await self._db.fetchall(
            "SELECT task_id, depends_on_id FROM task_dependencies ORDER BY task_id, position;"
        )
        entry_rows = await self._db.fetchall("SELECT * FROM time_entries ORDER BY start_at;")

        children: Dict[str, List[str]] = defaultdict(list)
        for r in subtask_rows:
            children[r["parent_id"]].append(r["child_id"])
        deps: Dict[str, List[str]] = defaultdict(list)
        for r in dep_rows:
            deps[r["task_id"]].append(r["depends_on_id"])

        return TaskGraph(
            tasks=[self._row_to_task(r, children[r["task_id"]], deps[r["task_id"]]) for r in task_rows],
            projects=[self._row_to_project(r) for r in project_rows],
            entries=[self._row_to_entry(r) for r in entry_rows],
        )

    async def save(self, graph: TaskGraph) -> None:
        tasks = graph.tasks()
        try:
            async with self._db.transaction() as conn:
                await conn.execute("DELETE FROM time_entries;")
                await conn.execute("DELETE FROM task_dependencies;")
                await conn.execute("DELETE FROM task_subtasks;")
                await conn.execute("DELETE FROM tasks;")
                await conn.execute("DELETE FROM projects;")

                await conn.executemany(
                    """
                    INSERT INTO projects(project_id, title, color, status, start_at, due_at, sort_order, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            p.project_id, p.title, p.color, p.status, to_iso_opt(p.start_at),
                            to_iso_opt(p.due_at), p.order, to_iso(p.created_at),
                        )
                        for p in graph.projects()
                    ],
                )
                await conn.executemany(
                    f"INSERT INTO tasks({_TASK_COLUMNS}) VALUES ({', '.join('?' * 22)});",
                    [self._task_params(t) for t in tasks],
                )
                await conn.executemany(
                    "INSERT INTO task_subtasks(parent_id, child_id, position) VALUES (?, ?, ?);",
                    [(t.task_id, child_id, pos) for t in tasks for pos, child_id in enumerate(t.subtask_ids)],
                )
                await conn.executemany(
                    "INSERT INTO task_dependencies(task_id, depends_on_id, position) VALUES (?, ?, ?);",
                    [(t.task_id, dep_id, pos) for t in tasks for pos, dep_id in enumerate(t.depends_on)],
                )
                await conn.executemany(
                    """
                    INSERT INTO time_entries(entry_id, task_id, start_at, end_at, personnel, created_at)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            e.entry_id, e.task_id, to_iso(e.start_at), to_iso_opt(e.end_at),
                            e.personnel, to_iso(e.created_at),
                        )
                        for e in graph.entries()
                    ],
                )
        except Exception:
            logger.error("Saving task graph failed (%d tasks)", len(tasks), exc_info=True)
            raise

    def _task_params(self, t: Task) -> tuple:
        return (
            t.task_id, t.title, t.priority, to_iso(t.created_at), to_iso_opt(t.completed_at),
            to_iso_opt(t.start_at), to_iso_opt(t.end_at), to_iso_opt(t.due_at), t.notes,
            t.estimated_seconds, 1 if t.has_custom_estimate else 0, t.effort_hours,
            t.expected_personnel, t.expected_quantity, t.quantity, t.unit, t.productivity_rate,
            1 if t.is_archived else 0, to_iso_opt(t.archived_at), t.order, t.project_id, t.parent_id,
        )

    def _row_to_task(self, row, subtask_ids: List[str], depends_on: List[str]) -> Task:
        return Task(
            task_id=row["task_id"],
            title=row["title"],
            created_at=from_iso(row["created_at"]),
            priority=int(row["priority"]),
            completed_at=from_iso_opt(row["completed_at"]),
            start_at=from_iso_opt(row["start_at"]),
            end_at=from_iso_opt(row["end_at"]),
            due_at=from_iso_opt(row["due_at"]),
            notes=row["notes"],
            estimated_seconds=row["estimated_seconds"],
            has_custom_estimate=bool(row["has_custom_estimate"]),
            effort_hours=row["effort_hours"],
            expected_personnel=row["expected_personnel"],
            expected_quantity=row["expected_quantity"],
            quantity=row["quantity"],
            unit=row["unit"],
            productivity_rate=row["productivity_rate"],
            is_archived=bool(row["is_archived"]),
            archived_at=from_iso_opt(row["archived_at"]),
            order=int(row["sort_order"] or 0),
            project_id=row["project_id"],
            parent_id=row["parent_id"],
            subtask_ids=tuple(subtask_ids),
            depends_on=tuple(depends_on),
        )

    def _row_to_project(self, row) -> Project:
        return Project(
            project_id=row["project_id"],
            title=row["title"],
            created_at=from_iso(row["created_at"]),
            color=row["color"],
            status=row["status"],
            start_at=from_iso_opt(row["start_at"]),
            due_at=from_iso_opt(row["due_at"]),
            order=int(row["sort_order"] or 0),
        )

    def _row_to_entry(self, row) -> TimeEntry:
        return TimeEntry(
            entry_id=row["entry_id"],
            task_id=row["task_id"],
            start_at=from_iso(row["start_at"]),
            end_at=from_iso_opt(row["end_at"]),
            created_at=from_iso(row["created_at"]),
            personnel=int(row["personnel"] or 1),
        )
