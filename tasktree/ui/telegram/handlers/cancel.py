from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from tasktree.domain.tasks.service import TaskService
from tasktree.ui.telegram.handlers._common import show_list
from tasktree.ui.telegram.texts import tasks as texts

router = Router()

CANCEL_WORDS = {"cancel", "stop"}


@router.message(Command("cancel"))
async def cancel_cmd(message: Message, state: FSMContext, task_service: TaskService):
    await state.clear()
    await message.answer(texts.CANCELLED)
    await show_list(message, task_service, prefer_edit=False)


@router.message(F.text.casefold().in_(CANCEL_WORDS))
async def cancel_text(message: Message, state: FSMContext, task_service: TaskService):
    await cancel_cmd(message, state, task_service)


@router.callback_query(F.data == "cancel")
async def cancel_cb(cb: CallbackQuery, state: FSMContext, task_service: TaskService):
    await cb.answer(texts.CANCELLED)
    await state.clear()
    await show_list(cb.message, task_service, prefer_edit=True)
