from __future__ import annotations

import logging
from typing import Optional

from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

from tasktree.domain.common.errors import DomainError, NotFoundError, PersistenceFailure
from tasktree.domain.tasks.ports import Clock
from tasktree.domain.tasks.service import TaskService
from tasktree.ui.telegram.render import render_task_detail, render_task_list
from tasktree.ui.telegram.texts import tasks as texts

logger = logging.getLogger(__name__)

FOCUS_KEY = "focus_task_id"


def command_args(message: Message) -> str:
    text = (message.text or "").strip()
    parts = text.split(maxsplit=1)
    if len(parts) < 2:
        return ""
    return parts[1].strip()


def callback_id(cb: CallbackQuery) -> str:
    return (cb.data or "").split(":")[-1]


def error_text(e: DomainError) -> str:
    if isinstance(e, PersistenceFailure):
        return texts.SAVE_FAILED
    return str(e)


async def send_or_edit(
    target: Message,
    text: str,
    markup: InlineKeyboardMarkup,
    prefer_edit: bool,
) -> None:
    """
    prefer_edit=True: edit target in place (callback UX).
    prefer_edit=False: send a new message (command UX).
    """
    if prefer_edit:
        try:
            await target.edit_text(text, reply_markup=markup)
            return
        except TelegramBadRequest as e:
            # unchanged content or a message too old to edit
            logger.debug("Edit failed, sending new message: %s", e)
    await target.answer(text, reply_markup=markup)


async def show_list(target: Message, task_service: TaskService, prefer_edit: bool) -> None:
    graph = await task_service.graph()
    text, markup = render_task_list(graph)
    await send_or_edit(target, text, markup, prefer_edit)


async def show_task(
    target: Message,
    task_id: str,
    task_service: TaskService,
    clock: Clock,
    state: Optional[FSMContext],
    prefer_edit: bool,
) -> None:
    """Render the task detail and remember it as the focused task."""
    try:
        ov = await task_service.task_overview(task_id)
    except NotFoundError:
        await show_list(target, task_service, prefer_edit)
        return
    if state is not None:
        await state.update_data(**{FOCUS_KEY: task_id})
    text, markup = render_task_detail(ov, clock.now())
    await send_or_edit(target, text, markup, prefer_edit)


async def focused_task_id(state: FSMContext) -> Optional[str]:
    data = await state.get_data()
    return data.get(FOCUS_KEY)
