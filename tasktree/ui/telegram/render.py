from __future__ import annotations

from datetime import datetime
from html import escape
from typing import List, Optional

from aiogram.types import InlineKeyboardMarkup

from tasktree.constants import TASK_STATUS_BLOCKED, TASK_STATUS_LABELS
from tasktree.domain.tasks.estimation import (
    format_seconds,
    minimum_personnel,
    task_available_hours,
)
from tasktree.domain.tasks.graph import TaskGraph
from tasktree.domain.tasks.models import Task, TaskOverview
from tasktree.domain.tasks.status import derive_status
from tasktree.ui.telegram.keyboards.tasks import STATUS_ICONS, pick_tasks_kb, task_detail_kb, task_list_kb
from tasktree.ui.telegram.texts import tasks as texts


def _tree_rows(graph: TaskGraph, include_archived: bool = False) -> list[tuple[Task, str, int]]:
    rows: list[tuple[Task, str, int]] = []

    def walk(task: Task, depth: int) -> None:
        if task.is_archived and not include_archived:
            return
        rows.append((task, derive_status(graph, task.task_id), depth))
        for sub in graph.subtasks(task.task_id):
            walk(sub, depth + 1)

    for root in graph.roots():
        walk(root, 0)
    return rows


def render_task_list(graph: TaskGraph) -> tuple[str, InlineKeyboardMarkup]:
    rows = _tree_rows(graph)
    if not rows:
        return texts.NO_TASKS, task_list_kb([])
    blocked = sum(1 for _, status, _ in rows if status == TASK_STATUS_BLOCKED)
    header = f"{texts.TASK_LIST_HEADER} {len(rows)}"
    if blocked:
        header += f" ({blocked} blocked)"
    return header, task_list_kb(rows)


def render_task_text(ov: TaskOverview, now: Optional[datetime] = None) -> str:
    """HTML body for the task detail message."""
    task = ov.task
    lines = [
        f"{STATUS_ICONS.get(ov.status, '')} <b>{escape(task.title)}</b>",
        f"Status: {TASK_STATUS_LABELS.get(ov.status, ov.status)}",
    ]
    if ov.project is not None:
        lines.append(f"Project: {escape(ov.project.title)}")
    if ov.parent is not None:
        lines.append(f"Part of: {escape(ov.parent.title)}")
    if ov.subtasks:
        done = sum(1 for s in ov.subtasks if s.is_completed)
        lines.append(f"Subtasks: {done}/{len(ov.subtasks)} done")

    if ov.estimate_seconds:
        lines.append(f"Estimate: {format_seconds(ov.estimate_seconds)}")
    if ov.tracked_seconds:
        lines.append(f"Tracked: {format_seconds(ov.tracked_seconds)}")
    if ov.active_timer is not None:
        lines.append(f"Timer running since {ov.active_timer.start_at:%H:%M}")

    if now is not None and task.effort_hours and not task.is_completed:
        hours = task_available_hours(task, now)
        if hours is not None:
            crew = minimum_personnel(task.effort_hours, hours)
            lines.append(f"Crew needed: {crew} ({hours:.1f} h available)")

    if ov.reasons:
        lines.append("")
        lines.append("<b>Blocked</b>")
        lines.extend(f"• {escape(r)}" for r in ov.reasons)

    if ov.blocked_by:
        lines.append("")
        lines.append("<b>Waiting on this</b>")
        lines.extend(f"• {escape(t.title)}" for t in ov.blocked_by)

    return "\n".join(lines)


def render_task_detail(ov: TaskOverview, now: Optional[datetime] = None) -> tuple[str, InlineKeyboardMarkup]:
    return render_task_text(ov, now), task_detail_kb(ov)


def render_dependency_picker(task: Task, candidates: List[Task]) -> tuple[str, InlineKeyboardMarkup]:
    if not candidates:
        return texts.NO_DEPENDENCY_CANDIDATES, pick_tasks_kb("dep:add", [], task.task_id)
    text = f"<b>{escape(task.title)}</b>\n{texts.PICK_DEPENDENCY}"
    return text, pick_tasks_kb("dep:add", candidates, task.task_id)


def render_move_picker(task: Task, candidates: List[Task]) -> tuple[str, InlineKeyboardMarkup]:
    if not candidates:
        return texts.NO_PARENT_CANDIDATES, pick_tasks_kb("move:to", [], task.task_id)
    text = f"<b>{escape(task.title)}</b>\n{texts.PICK_PARENT}"
    return text, pick_tasks_kb("move:to", candidates, task.task_id)
