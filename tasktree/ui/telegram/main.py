from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from tasktree.config import load_settings
from tasktree.domain.common.time import to_iso
from tasktree.domain.tasks.estimation import configure_workday
from tasktree.domain.tasks.service import TaskService
from tasktree.infra.clock.system_clock import SystemClock
from tasktree.infra.db.connection import Database
from tasktree.infra.db.repo.tasks_sqlite import TaskSqliteRepo
from tasktree.infra.db.schema_version import apply_migrations
from tasktree.infra.ids.uuid_gen import UuidGenerator

from tasktree.ui.telegram.handlers.cancel import router as cancel_router
from tasktree.ui.telegram.handlers.dependencies import router as dependencies_router
from tasktree.ui.telegram.handlers.tasks import router as tasks_router
from tasktree.ui.telegram.middlewares.auth import OwnerOnlyMiddleware
from tasktree.ui.telegram.middlewares.di import DIMiddleware

logger = logging.getLogger(__name__)


def resolve_db_path(db_path: Path, repo_root: Path) -> Path:
    if not db_path.is_absolute():
        db_path = repo_root / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - [PID:%(process)d] - %(message)s'
    )

    settings = load_settings()
    configure_workday(settings.store.workday_start, settings.store.workday_end)

    repo_root = Path(__file__).resolve().parents[3]  # .../tasktree/ui/telegram/main.py -> repo root

    # --- DB path: one place, always absolute, ensure dir exists ---
    db_path = resolve_db_path(settings.db_path, repo_root)
    logger.info("DB_PATH: %s", db_path)

    db = Database(str(db_path))
    clock = SystemClock(settings.timezone)
    ids = UuidGenerator()

    # --- migrations ---
    applied = await apply_migrations(db=db, now_iso=to_iso(clock.now()))
    if applied:
        logger.info("Applied migrations: %s", applied)

    # --- bot/dispatcher ---
    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()

    # --- services ---
    task_service = TaskService(repo=TaskSqliteRepo(db), clock=clock, ids=ids)

    # --- middlewares ---
    dp.message.middleware(OwnerOnlyMiddleware(settings.owner_telegram_id))
    dp.callback_query.middleware(OwnerOnlyMiddleware(settings.owner_telegram_id))

    dp.message.middleware(DIMiddleware(task_service, clock, settings.timezone))
    dp.callback_query.middleware(DIMiddleware(task_service, clock, settings.timezone))

    # --- routers ---
    # cancel first so it wins over FSM text input
    dp.include_router(cancel_router)
    dp.include_router(tasks_router)
    dp.include_router(dependencies_router)

    logger.info("Starting polling...")

    try:
        await dp.start_polling(bot)
    finally:
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
