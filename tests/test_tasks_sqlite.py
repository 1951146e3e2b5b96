"""
Tests for TaskSqliteRepo against a real SQLite file.

Uses a temporary DB file with migrations applied. Verifies that the whole
graph survives a save/load cycle and that a failing save commits nothing.
Run with: python -m pytest tests/test_tasks_sqlite.py -v
"""
from __future__ import annotations

import asyncio
import os
import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from tasktree.domain.common.time import to_iso
from tasktree.domain.tasks import engine
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Project, Task, TimeEntry
from tasktree.domain.tasks.service import TaskService
from tasktree.infra.db.connection import Database
from tasktree.infra.db.repo.tasks_sqlite import TaskSqliteRepo
from tasktree.infra.db.schema_version import apply_migrations
from tasktree.infra.ids.uuid_gen import UuidGenerator

TZ = timezone(timedelta(hours=2))
T0 = datetime(2024, 1, 8, 9, 0, tzinfo=TZ)


def _temp_db_path() -> str:
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    return path


async def _run_with_repo(test_fn):
    path = _temp_db_path()
    try:
        db = Database(path)
        await apply_migrations(db, now_iso=to_iso(T0))
        await test_fn(db, TaskSqliteRepo(db))
    finally:
        for suffix in ("", "-wal", "-shm"):
            if os.path.exists(path + suffix):
                os.unlink(path + suffix)


def _sample_graph() -> TaskGraph:
    graph = TaskGraph(projects=[Project(project_id="p1", title="House", created_at=T0, color="green")])
    engine.insert_task(
        graph,
        Task(
            task_id="a", title="Walls", created_at=T0, project_id="p1", effort_hours=12.5,
            estimated_seconds=7200, has_custom_estimate=True,
        ),
    )
    engine.add_subtask(
        graph, "a", Task(task_id="b", title="Prime", created_at=T0 + timedelta(minutes=1), estimated_seconds=1800)
    )
    engine.add_subtask(graph, "a", Task(task_id="c", title="Paint", created_at=T0 + timedelta(minutes=2)))
    engine.insert_task(
        graph,
        Task(task_id="d", title="Buy paint", created_at=T0, due_at=T0 + timedelta(days=2), quantity=20.0, unit="l"),
    )
    engine.add_dependency(graph, "c", "d")
    engine.add_dependency(graph, "c", "b")
    graph.put_entry(TimeEntry("e1", "b", T0, T0 + timedelta(hours=1), T0, personnel=2))
    graph.put_entry(TimeEntry("e2", "d", T0 + timedelta(hours=2), None, T0))
    return graph


def test_migrations_apply_once():
    async def run(db: Database, repo: TaskSqliteRepo):
        assert await apply_migrations(db, now_iso=to_iso(T0)) == []
        row = await db.fetchone("SELECT COUNT(*) AS n FROM schema_migrations;")
        assert row["n"] == 2

    asyncio.run(_run_with_repo(run))


def test_empty_database_loads_empty_graph():
    async def run(db: Database, repo: TaskSqliteRepo):
        graph = await repo.load()
        assert len(graph) == 0
        assert graph.projects() == []

    asyncio.run(_run_with_repo(run))


def test_save_and_load_keeps_every_relation():
    async def run(db: Database, repo: TaskSqliteRepo):
        original = _sample_graph()
        await repo.save(original)
        loaded = await repo.load()

        for task in original:
            assert loaded.get(task.task_id) == task
        assert loaded.get("a").subtask_ids == ("b", "c")
        assert loaded.get("c").depends_on == ("d", "b")
        assert loaded.project("p1") == original.project("p1")
        assert loaded.active_timer("d") is not None
        assert loaded.entries_for("b")[0].personnel == 2

    asyncio.run(_run_with_repo(run))


def test_save_replaces_previous_state():
    async def run(db: Database, repo: TaskSqliteRepo):
        graph = _sample_graph()
        await repo.save(graph)
        engine.remove_task(graph, "a")
        await repo.save(graph)

        loaded = await repo.load()
        assert [t.task_id for t in loaded] == ["d"]
        assert loaded.entries_for("b") == []

    asyncio.run(_run_with_repo(run))


def test_failed_save_commits_nothing():
    async def run(db: Database, repo: TaskSqliteRepo):
        await repo.save(_sample_graph())

        broken = _sample_graph()
        # dangling edge: rejected by the foreign key check at commit
        broken.put(Task(task_id="x", title="Ghost edge", created_at=T0, depends_on=("nope",)))
        with pytest.raises(sqlite3.IntegrityError):
            await repo.save(broken)

        loaded = await repo.load()
        assert "x" not in loaded
        assert len(loaded) == 4

    asyncio.run(_run_with_repo(run))


def test_service_state_survives_restart():
    async def run(db: Database, repo: TaskSqliteRepo):
        class Clock:
            def now(self):
                return T0

        svc = TaskService(repo=repo, clock=Clock(), ids=UuidGenerator())
        a = await svc.create_task("A")
        b = await svc.create_task("B")
        await svc.add_dependency(a.task_id, b.task_id)

        fresh = TaskService(repo=TaskSqliteRepo(db), clock=Clock(), ids=UuidGenerator())
        ov = await fresh.task_overview(a.task_id)
        assert ov.status == "blocked"
        assert [t.task_id for t in ov.dependencies] == [b.task_id]

    asyncio.run(_run_with_repo(run))
