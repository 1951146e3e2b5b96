from aiogram.fsm.state import StatesGroup, State


class TaskFlow(StatesGroup):
    add_title = State()
    add_subtask_title = State()
