from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

from tasktree.constants import DEFAULT_WORKDAY_END, DEFAULT_WORKDAY_START


@dataclass(frozen=True)
class StoreSettings:
    timezone: str
    db_path: Path
    workday_start: int
    workday_end: int


@dataclass(frozen=True)
class Settings:
    bot_token: str
    owner_telegram_id: int
    store: StoreSettings

    @property
    def timezone(self) -> str:
        return self.store.timezone

    @property
    def db_path(self) -> Path:
        return self.store.db_path


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def load_store_settings() -> StoreSettings:
    """Storage and time settings only; enough for scripts and tests without a bot."""
    load_dotenv()
    tz = os.getenv("TZ", "").strip() or "Europe/Helsinki"
    db_raw = os.getenv("DB_PATH", "").strip() or "data/tasktree.db"
    workday_start = _int_env("WORKDAY_START", DEFAULT_WORKDAY_START)
    workday_end = _int_env("WORKDAY_END", DEFAULT_WORKDAY_END)

    if not 0 <= workday_start < workday_end <= 24:
        raise RuntimeError("WORKDAY_START/WORKDAY_END must satisfy 0 <= start < end <= 24")

    # db_path may be relative; the entry point resolves it
    return StoreSettings(
        timezone=tz,
        db_path=Path(db_raw),
        workday_start=workday_start,
        workday_end=workday_end,
    )


def load_settings() -> Settings:
    store = load_store_settings()
    bot_token = os.getenv("BOT_TOKEN", "").strip()
    owner_id = _int_env("OWNER_TELEGRAM_ID", 0)

    if not bot_token:
        raise RuntimeError("BOT_TOKEN missing in .env")
    if owner_id <= 0:
        raise RuntimeError("OWNER_TELEGRAM_ID missing/invalid in .env")

    return Settings(bot_token=bot_token, owner_telegram_id=owner_id, store=store)
