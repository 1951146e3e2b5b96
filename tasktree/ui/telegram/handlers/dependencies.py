from __future__ import annotations

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from tasktree.domain.common.errors import DomainError
from tasktree.domain.tasks.ports import Clock
from tasktree.domain.tasks.service import TaskService
from tasktree.ui.telegram.handlers._common import (
    FOCUS_KEY,
    callback_id,
    error_text,
    focused_task_id,
    send_or_edit,
    show_task,
)
from tasktree.ui.telegram.render import render_dependency_picker, render_move_picker
from tasktree.ui.telegram.texts import tasks as texts

router = Router()

# Callback data carries a single id (64 byte limit); the task being edited
# is kept in FSM data under FOCUS_KEY.


@router.callback_query(F.data.startswith("dep:pick:"))
async def dep_pick(cb: CallbackQuery, state: FSMContext, task_service: TaskService):
    task_id = callback_id(cb)
    try:
        ov = await task_service.task_overview(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer()
    await state.update_data(**{FOCUS_KEY: task_id})
    text, markup = render_dependency_picker(ov.task, list(ov.addable))
    await send_or_edit(cb.message, text, markup, prefer_edit=True)


@router.callback_query(F.data.startswith("dep:add:"))
async def dep_add(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    source_id = await focused_task_id(state)
    if not source_id:
        await cb.answer(texts.NOTHING_SELECTED, show_alert=True)
        return
    try:
        await task_service.add_dependency(source_id, callback_id(cb))
    except DomainError as e:
        # cycles and duplicates are expected here; show why and keep the picker open
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.DEPENDENCY_ADDED)
    await show_task(cb.message, source_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("dep:rm:"))
async def dep_remove(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    source_id = await focused_task_id(state)
    if not source_id:
        await cb.answer(texts.NOTHING_SELECTED, show_alert=True)
        return
    try:
        await task_service.remove_dependency(source_id, callback_id(cb))
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.DEPENDENCY_REMOVED)
    await show_task(cb.message, source_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("move:pick:"))
async def move_pick(cb: CallbackQuery, state: FSMContext, task_service: TaskService):
    task_id = callback_id(cb)
    try:
        ov = await task_service.task_overview(task_id)
        candidates = await task_service.parent_candidates(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer()
    await state.update_data(**{FOCUS_KEY: task_id})
    text, markup = render_move_picker(ov.task, candidates)
    await send_or_edit(cb.message, text, markup, prefer_edit=True)


@router.callback_query(F.data.startswith("move:to:"))
async def move_to(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = await focused_task_id(state)
    if not task_id:
        await cb.answer(texts.NOTHING_SELECTED, show_alert=True)
        return
    try:
        await task_service.move_subtask(task_id, callback_id(cb))
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TASK_MOVED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("move:detach:"))
async def move_detach(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = callback_id(cb)
    try:
        await task_service.detach_subtask(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TASK_DETACHED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)
