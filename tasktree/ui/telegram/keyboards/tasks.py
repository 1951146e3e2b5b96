from __future__ import annotations

from typing import Iterable

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from tasktree.constants import TASK_STATUS_BLOCKED, TASK_STATUS_COMPLETED
from tasktree.domain.tasks.models import Task, TaskOverview

STATUS_ICONS = {
    "blocked": "⛔",
    "ready": "⚪",
    "in_progress": "🔵",
    "completed": "✅",
}


def _short(title: str, limit: int = 40) -> str:
    return title if len(title) <= limit else title[: limit - 1] + "…"


def task_list_kb(rows: Iterable[tuple[Task, str, int]]) -> InlineKeyboardMarkup:
    """
    rows: (task, status, depth). Subtasks are indented by depth.
    """
    kb = InlineKeyboardBuilder()
    for task, status, depth in rows:
        indent = "  " * depth
        kb.button(
            text=f"{indent}{STATUS_ICONS.get(status, '')} {_short(task.title)}",
            callback_data=f"task:open:{task.task_id}",
        )
    kb.button(text="➕ New task", callback_data="task:new")
    kb.adjust(1)
    return kb.as_markup()


def task_detail_kb(ov: TaskOverview) -> InlineKeyboardMarkup:
    tid = ov.task.task_id
    kb = InlineKeyboardBuilder()

    if ov.status == TASK_STATUS_COMPLETED:
        kb.button(text="↩️ Reopen", callback_data=f"task:reopen:{tid}")
    else:
        if ov.status != TASK_STATUS_BLOCKED:
            kb.button(text="✅ Complete", callback_data=f"task:done:{tid}")
        if ov.active_timer is not None:
            kb.button(text="⏹ Stop timer", callback_data=f"timer:stop:{tid}")
        elif ov.status != TASK_STATUS_BLOCKED:
            kb.button(text="▶️ Start timer", callback_data=f"timer:start:{tid}")

    kb.button(text="🔗 Add dependency", callback_data=f"dep:pick:{tid}")
    for dep in ov.dependencies:
        kb.button(text=f"✖️ {_short(dep.title, 30)}", callback_data=f"dep:rm:{dep.task_id}")

    kb.button(text="➕ Subtask", callback_data=f"task:sub:{tid}")
    kb.button(text="📦 Move", callback_data=f"move:pick:{tid}")
    kb.button(text="📄 Duplicate", callback_data=f"task:dup:{tid}")
    kb.button(text="🔼 Up", callback_data=f"task:up:{tid}")
    if ov.parent is not None:
        kb.button(text="⬆️ Make top-level", callback_data=f"move:detach:{tid}")
        kb.button(text="⬅️ Parent", callback_data=f"task:open:{ov.parent.task_id}")
    kb.button(text="🗑️ Delete", callback_data=f"task:del:{tid}")
    kb.button(text="📋 All tasks", callback_data="task:list")
    kb.adjust(2)
    return kb.as_markup()


def pick_tasks_kb(prefix: str, tasks: Iterable[Task], back_task_id: str) -> InlineKeyboardMarkup:
    """
    prefix examples:
      - "dep:add"
      - "move:to"
    callback_data will be f"{prefix}:{task_id}"
    """
    kb = InlineKeyboardBuilder()
    for t in tasks:
        kb.button(text=_short(t.title), callback_data=f"{prefix}:{t.task_id}")
    kb.button(text="Cancel", callback_data=f"task:open:{back_task_id}")
    kb.adjust(1)
    return kb.as_markup()


def cancel_kb(prefix: str = "cancel") -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="Cancel", callback_data=prefix)
    kb.adjust(1)
    return kb.as_markup()
