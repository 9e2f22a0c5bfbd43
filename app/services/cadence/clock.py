"""Time helpers. The engine never reads the wall clock; callers pass ``now``."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo); convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def system_clock() -> datetime:
    """Wall clock for the HTTP boundary and scripts."""
    return datetime.now(UTC)
