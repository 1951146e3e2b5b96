from __future__ import annotations

from datetime import datetime
from typing import Optional


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt


def to_iso(dt: datetime) -> str:
    ensure_aware(dt)
    # store as ISO 8601 with offset
    return dt.isoformat()


def from_iso(s: str) -> datetime:
    return datetime.fromisoformat(s)


def to_iso_opt(dt: Optional[datetime]) -> Optional[str]:
    return to_iso(dt) if dt is not None else None


def from_iso_opt(s: Optional[str]) -> Optional[datetime]:
    return from_iso(s) if s else None
