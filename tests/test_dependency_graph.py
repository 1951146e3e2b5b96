"""
Tests for the subtask tree and dependency graph mutations.

Pure in-memory graphs; no DB. Every rejected operation must leave the graph
exactly as it was.
Run with: python -m pytest tests/test_dependency_graph.py -v
"""
from __future__ import annotations

import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from tasktree.domain.common.errors import (
    CircularMove,
    CycleDetected,
    DuplicateEdge,
    GraphError,
    NotFoundError,
    ValidationError,
)
from tasktree.domain.tasks import engine
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Task
from tasktree.domain.tasks.status import can_complete

T0 = datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)


def _task(task_id: str, minutes: int = 0, **kw) -> Task:
    return Task(task_id=task_id, title=task_id.upper(), created_at=T0 + timedelta(minutes=minutes), **kw)


def _abc() -> TaskGraph:
    """A with subtask B, C independent."""
    graph = TaskGraph()
    engine.insert_task(graph, _task("a", 0))
    engine.add_subtask(graph, "a", _task("b", 1))
    engine.insert_task(graph, _task("c", 2))
    return graph


def _snapshot(graph: TaskGraph) -> dict:
    return {t.task_id: t for t in graph}


def test_walkthrough_dependency_then_moves():
    graph = _abc()

    engine.add_dependency(graph, "a", "c")
    assert graph.get("a").depends_on == ("c",)

    with pytest.raises(CycleDetected):
        engine.add_dependency(graph, "c", "a")

    engine.move_subtask(graph, "b", "c")
    assert graph.get("b").parent_id == "c"
    assert "b" not in graph.get("a").subtask_ids
    assert graph.get("c").subtask_ids == ("b",)

    with pytest.raises(CircularMove):
        engine.move_subtask(graph, "c", "b")


def test_self_dependency_rejected_without_mutation():
    graph = _abc()
    before = _snapshot(graph)
    with pytest.raises(CycleDetected):
        engine.add_dependency(graph, "c", "c")
    assert _snapshot(graph) == before


def test_duplicate_edge_rejected():
    graph = _abc()
    engine.add_dependency(graph, "a", "c")
    with pytest.raises(DuplicateEdge):
        engine.add_dependency(graph, "a", "c")
    assert graph.get("a").depends_on == ("c",)


def test_cannot_depend_on_parent_or_subtask():
    graph = _abc()
    with pytest.raises(CycleDetected):
        engine.add_dependency(graph, "b", "a")
    with pytest.raises(CycleDetected):
        engine.add_dependency(graph, "a", "b")


def test_transitive_cycle_rejected():
    graph = TaskGraph()
    for i, tid in enumerate(("x", "y", "z")):
        engine.insert_task(graph, _task(tid, i))
    engine.add_dependency(graph, "x", "y")
    engine.add_dependency(graph, "y", "z")
    before = _snapshot(graph)

    with pytest.raises(CycleDetected):
        engine.add_dependency(graph, "z", "x")
    assert _snapshot(graph) == before


def test_cycle_through_subtask_dependency_rejected():
    """B (subtask of A) waits on C, so A is blocked by C; C may not wait on A."""
    graph = _abc()
    engine.add_dependency(graph, "b", "c")
    with pytest.raises(CycleDetected):
        engine.add_dependency(graph, "c", "a")


def test_unknown_task_is_not_found():
    graph = _abc()
    with pytest.raises(NotFoundError):
        engine.add_dependency(graph, "a", "ghost")


def test_remove_dependency_absent_edge_is_noop():
    graph = _abc()
    before = graph.get("a")
    assert engine.remove_dependency(graph, "a", "c") is before

    engine.add_dependency(graph, "a", "c")
    updated = engine.remove_dependency(graph, "a", "c")
    assert updated.depends_on == ()


def test_candidates_exclude_self_deps_ancestors_descendants():
    graph = _abc()
    engine.add_subtask(graph, "b", _task("d", 3))
    engine.insert_task(graph, _task("e", 4))
    engine.add_dependency(graph, "a", "c")

    ids = {t.task_id for t in engine.available_dependency_candidates(graph, "a")}
    assert ids == {"e"}

    ids = {t.task_id for t in engine.available_dependency_candidates(graph, "b")}
    assert ids == {"c", "e"}


def test_parent_candidates_exclude_subtree_and_current_parent():
    graph = _abc()
    engine.add_subtask(graph, "b", _task("d", 3))
    ids = {t.task_id for t in engine.available_parent_candidates(graph, "b")}
    assert ids == {"c"}


def test_move_appends_at_next_order_and_inherits_project():
    graph = TaskGraph()
    engine.insert_task(graph, _task("p", 0, project_id="proj"))
    engine.add_subtask(graph, "p", _task("s1", 1))
    engine.add_subtask(graph, "p", _task("s2", 2))
    engine.insert_task(graph, _task("m", 3))

    moved = engine.move_subtask(graph, "m", "p")

    assert moved.order == 2
    assert moved.project_id == "proj"
    assert graph.get("p").subtask_ids == ("s1", "s2", "m")


def test_move_under_own_descendant_rejected():
    graph = _abc()
    engine.add_subtask(graph, "b", _task("d", 3))
    before = _snapshot(graph)
    with pytest.raises(CircularMove):
        engine.move_subtask(graph, "a", "d")
    with pytest.raises(CircularMove):
        engine.move_subtask(graph, "a", "a")
    assert _snapshot(graph) == before


def test_move_under_own_dependency_rejected():
    graph = TaskGraph()
    engine.insert_task(graph, _task("p", 0))
    engine.insert_task(graph, _task("q", 1))
    engine.add_dependency(graph, "q", "p")
    with pytest.raises(CircularMove):
        engine.move_subtask(graph, "q", "p")


def test_move_under_task_that_waits_on_it_rejected():
    graph = TaskGraph()
    engine.insert_task(graph, _task("p", 0))
    engine.insert_task(graph, _task("q", 1))
    engine.add_dependency(graph, "p", "q")
    with pytest.raises(CircularMove):
        engine.move_subtask(graph, "q", "p")


def _deadlock_setup() -> TaskGraph:
    """D has subtask E, E depends on N, T depends on D."""
    graph = TaskGraph()
    engine.insert_task(graph, _task("n", 0))
    engine.insert_task(graph, _task("d", 1))
    engine.add_subtask(graph, "d", _task("e", 2))
    engine.insert_task(graph, _task("t", 3))
    engine.insert_task(graph, _task("x", 4))
    engine.add_dependency(graph, "e", "n")
    engine.add_dependency(graph, "t", "d")
    return graph


def test_move_rejected_when_dependency_waits_on_new_parent_through_subtask():
    graph = _deadlock_setup()
    before = _snapshot(graph)
    # N would wait on D through T, and D already waits on N through E
    with pytest.raises(CircularMove):
        engine.move_subtask(graph, "t", "n")
    assert _snapshot(graph) == before


def test_move_allowed_when_new_parent_is_unrelated():
    graph = _deadlock_setup()
    engine.move_subtask(graph, "t", "x")
    assert graph.get("t").parent_id == "x"
    assert can_complete(graph, "n")


def test_detach_subtask_promotes_to_top_level():
    graph = _abc()
    detached = engine.detach_subtask(graph, "b")
    assert detached.parent_id is None
    assert graph.get("a").subtask_ids == ()
    assert [t.task_id for t in graph.roots()] == ["a", "c", "b"]


def test_remove_task_cascades_subtree_and_edges():
    graph = _abc()
    engine.add_dependency(graph, "c", "b")

    removed = engine.remove_task(graph, "a")

    assert removed == ["a", "b"]
    assert "a" not in graph and "b" not in graph
    assert graph.get("c").depends_on == ()


def test_remove_subtask_detaches_from_parent():
    graph = _abc()
    engine.remove_task(graph, "b")
    assert graph.get("a").subtask_ids == ()


def test_addable_drops_candidates_that_would_close_a_loop():
    graph = _abc()
    engine.add_dependency(graph, "b", "c")

    candidates = {t.task_id for t in engine.available_dependency_candidates(graph, "c")}
    addable = {t.task_id for t in engine.addable_dependencies(graph, "c")}
    # A waits on C through its subtask B
    assert candidates == {"a", "b"}
    assert addable == set()

    for task_id in candidates - addable:
        with pytest.raises(GraphError):
            engine.add_dependency(graph, "c", task_id)


def test_addable_keeps_safe_candidates():
    graph = _abc()
    engine.insert_task(graph, _task("d", 3))
    engine.add_dependency(graph, "d", "c")
    assert [t.task_id for t in engine.addable_dependencies(graph, "a")] == ["c", "d"]
    assert [t.task_id for t in engine.addable_dependencies(graph, "c")] == ["a", "b"]


# ----- duplicate / reorder -----


def test_duplicate_inserts_copy_after_original():
    graph = _abc()
    engine.add_subtask(graph, "a", _task("b2", 3))
    engine.add_dependency(graph, "b", "c")
    graph.put(replace(graph.get("b"), completed_at=T0, notes="n", estimated_seconds=600))

    copy = engine.duplicate_task(graph, "b", "bx", T0 + timedelta(hours=1))

    assert copy.title == "B (Copy)"
    assert copy.parent_id == "a"
    assert copy.order == graph.get("b").order + 1
    assert copy.completed_at is None
    assert copy.depends_on == () and copy.subtask_ids == ()
    assert copy.notes == "n" and copy.estimated_seconds == 600
    assert copy.created_at == T0 + timedelta(hours=1)
    assert graph.get("a").subtask_ids == ("b", "bx", "b2")
    assert graph.get("b2").order == copy.order + 1


def test_duplicate_top_level_shifts_later_roots():
    graph = _abc()
    engine.add_subtask(graph, "a", _task("b2", 3))
    engine.duplicate_task(graph, "a", "ax", T0)
    assert [t.task_id for t in graph.roots()] == ["a", "ax", "c"]
    # subtasks stay with the original
    assert graph.get("ax").subtask_ids == ()
    assert graph.get("a").subtask_ids == ("b", "b2")


def test_reorder_sets_order_to_position():
    graph = _abc()
    engine.add_subtask(graph, "a", _task("b2", 3))
    engine.add_subtask(graph, "a", _task("b3", 4))

    engine.reorder_subtasks(graph, "a", ["b3", "b", "b2"])

    assert graph.get("a").subtask_ids == ("b3", "b", "b2")
    assert [graph.get(i).order for i in ("b3", "b", "b2")] == [0, 1, 2]

    engine.reorder_subtasks(graph, None, ["c", "a"])
    assert [t.task_id for t in graph.roots()] == ["c", "a"]


def test_reorder_requires_exact_sibling_set():
    graph = _abc()
    engine.add_subtask(graph, "a", _task("b2", 3))
    before = _snapshot(graph)
    for ids in (["b"], ["b", "b2", "c"], ["b", "b"]):
        with pytest.raises(ValidationError):
            engine.reorder_subtasks(graph, "a", ids)
    assert _snapshot(graph) == before


# ----- custom estimates -----


def test_custom_estimate_cannot_undercut_subtasks():
    graph = _abc()
    engine.add_subtask(graph, "a", _task("b2", 3))
    graph.put(replace(graph.get("b"), estimated_seconds=3600))
    graph.put(replace(graph.get("b2"), estimated_seconds=1800))

    with pytest.raises(ValidationError):
        engine.set_custom_estimate(graph, "a", 3000)
    assert not graph.get("a").has_custom_estimate

    pinned = engine.set_custom_estimate(graph, "a", 7200)
    assert pinned.has_custom_estimate and pinned.estimated_seconds == 7200

    released = engine.clear_custom_estimate(graph, "a")
    assert not released.has_custom_estimate


# ----- random sequences -----


def _assert_acyclic_depends_on(graph: TaskGraph) -> None:
    state = {}

    def visit(task_id: str) -> None:
        state[task_id] = "open"
        for dep_id in graph.get(task_id).depends_on:
            assert state.get(dep_id) != "open", f"depends_on cycle through {dep_id}"
            if dep_id not in state:
                visit(dep_id)
        state[task_id] = "done"

    for task in graph:
        if task.task_id not in state:
            visit(task.task_id)


def _assert_tree_consistent(graph: TaskGraph) -> None:
    for task in graph:
        current, steps = task, 0
        while current.parent_id is not None:
            steps += 1
            assert steps <= len(graph), f"parent loop above {task.task_id}"
            current = graph.get(current.parent_id)
        for sub_id in task.subtask_ids:
            assert graph.get(sub_id).parent_id == task.task_id
        if task.parent_id is not None:
            assert task.task_id in graph.get(task.parent_id).subtask_ids


def _assert_everything_completable(graph: TaskGraph) -> None:
    trial = graph.copy()
    progress = True
    while progress:
        progress = False
        for task in trial.tasks():
            if not task.is_completed and can_complete(trial, task.task_id):
                trial.put(replace(task, completed_at=T0))
                progress = True
    stuck = [t.task_id for t in trial if not t.is_completed]
    assert stuck == [], f"tasks that can never be completed: {stuck}"


@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
def test_random_operations_keep_graph_completable(seed):
    rng = random.Random(seed)
    graph = TaskGraph()
    ids = [f"t{i}" for i in range(12)]
    for i, task_id in enumerate(ids):
        engine.insert_task(graph, _task(task_id, i))

    for _ in range(300):
        a, b = rng.sample(ids, 2)
        op = rng.random()
        try:
            if op < 0.45:
                engine.add_dependency(graph, a, b)
            elif op < 0.8:
                engine.move_subtask(graph, a, b)
            elif op < 0.9:
                engine.remove_dependency(graph, a, b)
            else:
                engine.detach_subtask(graph, a)
        except GraphError:
            pass

        _assert_acyclic_depends_on(graph)
        _assert_tree_consistent(graph)
        _assert_everything_completable(graph)
