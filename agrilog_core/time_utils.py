from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def subtract_days(value: datetime, days: int) -> datetime:
    return value - timedelta(days=days)


def subtract_months(value: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping to the last day of the month."""
    total = value.year * 12 + (value.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def add_months(value: datetime, months: int) -> datetime:
    return subtract_months(value, -months)


def day_key(value: datetime) -> str:
    return ensure_utc(value).date().isoformat()


def month_key(value: datetime) -> str:
    stamp = ensure_utc(value)
    return f"{stamp.year:04d}-{stamp.month:02d}"


def start_of_day(value: datetime) -> datetime:
    stamp = ensure_utc(value)
    return stamp.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_date(value: str | date | datetime) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(candidate))


def isoformat(value: datetime) -> str:
    return ensure_utc(value).isoformat()
