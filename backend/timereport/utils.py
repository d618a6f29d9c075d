from __future__ import annotations

import calendar
import datetime as dt
from typing import Any, List, Optional, Tuple
from zoneinfo import ZoneInfo

from .config import settings


UTC = dt.timezone.utc
LOCAL_TZ = ZoneInfo(settings.timezone)


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def local_today() -> dt.date:
    return dt.datetime.now(LOCAL_TZ).date()


def as_date(value: Any) -> Any:
    """Drop the time of day from datetimes, leaving other values untouched."""
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(LOCAL_TZ)
        return value.date()
    return value


def normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def is_weekday(day: dt.date) -> bool:
    return day.weekday() < 5


def days_in_month(year: int, month: int) -> List[dt.date]:
    _, last_day = calendar.monthrange(year, month)
    return [dt.date(year, month, number) for number in range(1, last_day + 1)]


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Return the (year, month) pair ``delta`` months away from the given one."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
