# taskhub/core/timeutils.py
"""
Время в проекте хранится как naive UTC.

Все сравнения дат (overdue, due today, окна дашборда) идут через эти функции,
чтобы SQLite и PostgreSQL вели себя одинаково.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Aware -> UTC без tzinfo; naive считается уже UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value, end_of_day: bool = False) -> datetime:
    """
    Принимает datetime, date или ISO 8601 строку.
    Для даты без времени end_of_day=True даёт 23:59:59.999999 этого дня.
    Бросает ValueError при неразборчивом значении.
    """
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid datetime value: {value!r}")
    raw = value.strip()
    if len(raw) == 10:
        parsed_date = date.fromisoformat(raw)
        return datetime.combine(parsed_date, time.max if end_of_day else time.min)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(raw))


def day_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Начало и конец календарного дня (UTC), включительно."""
    now = to_utc_naive(now) if now else utcnow()
    start = datetime.combine(now.date(), time.min)
    return start, datetime.combine(now.date(), time.max)


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    now = to_utc_naive(now) if now else utcnow()
    return now - timedelta(days=days)
