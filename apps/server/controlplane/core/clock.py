"""Time helpers shared by services that compare stored expiry timestamps."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware in UTC."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """A record expires strictly after its stored expiry instant."""

    return as_utc(now) > as_utc(expires_at)


__all__ = ["Clock", "as_utc", "is_expired", "utcnow"]
