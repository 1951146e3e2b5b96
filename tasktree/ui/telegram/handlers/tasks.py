from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from tasktree.domain.common.errors import DomainError
from tasktree.domain.tasks.ports import Clock
from tasktree.domain.tasks.service import TaskService
from tasktree.ui.telegram.handlers._common import (
    callback_id,
    command_args,
    error_text,
    focused_task_id,
    show_list,
    show_task,
)
from tasktree.ui.telegram.keyboards.tasks import cancel_kb
from tasktree.ui.telegram.states.tasks import TaskFlow
from tasktree.ui.telegram.texts import tasks as texts

router = Router()


@router.message(CommandStart())
@router.message(Command("tasks"))
async def tasks_list(message: Message, state: FSMContext, task_service: TaskService):
    await state.clear()
    await show_list(message, task_service, prefer_edit=False)


@router.callback_query(F.data == "task:list")
async def tasks_list_cb(cb: CallbackQuery, task_service: TaskService):
    await cb.answer()
    await show_list(cb.message, task_service, prefer_edit=True)


async def _create(message: Message, title: str, task_service: TaskService, clock: Clock, state: FSMContext) -> None:
    try:
        created = await task_service.create_task(title)
    except DomainError as e:
        await message.answer(error_text(e))
        return
    await state.clear()
    await message.answer(texts.TASK_ADDED)
    await show_task(message, created.task_id, task_service, clock, state, prefer_edit=False)


@router.message(Command("add"))
async def add_cmd(message: Message, state: FSMContext, task_service: TaskService, clock: Clock):
    # /add <title> adds directly, bare /add asks for the title
    title = command_args(message)
    if title:
        await _create(message, title, task_service, clock, state)
        return
    await state.set_state(TaskFlow.add_title)
    await message.answer(texts.ASK_TITLE, reply_markup=cancel_kb())


@router.callback_query(F.data == "task:new")
async def add_cb(cb: CallbackQuery, state: FSMContext):
    await cb.answer()
    await state.set_state(TaskFlow.add_title)
    await cb.message.answer(texts.ASK_TITLE, reply_markup=cancel_kb())


@router.message(TaskFlow.add_title)
async def add_title(message: Message, state: FSMContext, task_service: TaskService, clock: Clock):
    title = (message.text or "").strip()
    if not title:
        await message.answer(texts.TITLE_REQUIRED)
        return
    await _create(message, title, task_service, clock, state)


@router.callback_query(F.data.startswith("task:open:"))
async def task_open(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    await cb.answer()
    await show_task(cb.message, callback_id(cb), task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("task:sub:"))
async def subtask_ask(cb: CallbackQuery, state: FSMContext):
    await cb.answer()
    await state.update_data(parent_id=callback_id(cb))
    await state.set_state(TaskFlow.add_subtask_title)
    await cb.message.answer(texts.ASK_SUBTASK_TITLE, reply_markup=cancel_kb())


@router.message(TaskFlow.add_subtask_title)
async def subtask_title(message: Message, state: FSMContext, task_service: TaskService, clock: Clock):
    title = (message.text or "").strip()
    if not title:
        await message.answer(texts.TITLE_REQUIRED)
        return

    data = await state.get_data()
    parent_id = data.get("parent_id")
    if not parent_id:
        await state.clear()
        await message.answer(texts.TASK_GONE)
        return

    try:
        await task_service.add_subtask(parent_id, title)
    except DomainError as e:
        await message.answer(error_text(e))
        return
    await state.clear()
    await message.answer(texts.TASK_ADDED)
    await show_task(message, parent_id, task_service, clock, state, prefer_edit=False)


@router.callback_query(F.data.startswith("task:done:"))
async def task_done(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = callback_id(cb)
    try:
        await task_service.complete_task(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TASK_COMPLETED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("task:reopen:"))
async def task_reopen(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = callback_id(cb)
    try:
        await task_service.reopen_task(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TASK_REOPENED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("task:del:"))
async def task_delete(cb: CallbackQuery, state: FSMContext, task_service: TaskService):
    try:
        await task_service.remove_task(callback_id(cb))
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await state.clear()
    await cb.answer(texts.TASK_DELETED)
    await show_list(cb.message, task_service, prefer_edit=True)


@router.callback_query(F.data.startswith("timer:start:"))
async def timer_start(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = callback_id(cb)
    try:
        await task_service.start_timer(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TIMER_STARTED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("timer:stop:"))
async def timer_stop(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = callback_id(cb)
    try:
        await task_service.stop_timer(task_id)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TIMER_STOPPED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("task:dup:"))
async def task_duplicate(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    try:
        copy = await task_service.duplicate_task(callback_id(cb))
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TASK_DUPLICATED)
    await show_task(cb.message, copy.task_id, task_service, clock, state, prefer_edit=True)


@router.callback_query(F.data.startswith("task:up:"))
async def task_up(cb: CallbackQuery, state: FSMContext, task_service: TaskService, clock: Clock):
    task_id = callback_id(cb)
    try:
        await task_service.shift_task(task_id, -1)
    except DomainError as e:
        await cb.answer(error_text(e), show_alert=True)
        return
    await cb.answer(texts.TASK_SHIFTED)
    await show_task(cb.message, task_id, task_service, clock, state, prefer_edit=True)


@router.message(Command("estimate"))
async def estimate_cmd(message: Message, state: FSMContext, task_service: TaskService, clock: Clock):
    # /estimate <minutes> pins the focused task's estimate, /estimate auto releases it
    task_id = await focused_task_id(state)
    if not task_id:
        await message.answer(texts.NOTHING_SELECTED)
        return
    arg = command_args(message).lower()
    try:
        if arg == "auto":
            await task_service.clear_custom_estimate(task_id)
            reply = texts.ESTIMATE_CLEARED
        elif arg.isdigit():
            await task_service.set_estimate(task_id, int(arg) * 60)
            reply = texts.ESTIMATE_SET
        else:
            await message.answer(texts.ESTIMATE_USAGE)
            return
    except DomainError as e:
        await message.answer(error_text(e))
        return
    await message.answer(reply)
    await show_task(message, task_id, task_service, clock, state, prefer_edit=False)
