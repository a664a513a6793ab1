"""Calendar-day boundary helpers.

Every "same day" decision in the engine goes through :func:`day_key`, which
maps a timestamp to its calendar date in the local time zone.
"""
from __future__ import annotations
import datetime as dt
from typing import Any, Optional


def day_key(ts: Optional[dt.datetime] = None) -> dt.date:
    ts = ts or dt.datetime.now()
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.date()


def format_day(day: dt.date) -> str:
    return day.isoformat()


def parse_day(value: Any) -> Optional[dt.date]:
    """Persisted day strings back to dates; anything unreadable is None."""
    if isinstance(value, dt.datetime):
        return day_key(value)
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return dt.date.fromisoformat(value[:10])
    except ValueError:
        return None


def days_between(earlier: dt.date, later: dt.date) -> int:
    return (later - earlier).days


def next_puzzle_at(now: Optional[dt.datetime] = None) -> dt.datetime:
    now = now or dt.datetime.now()
    tomorrow = day_key(now) + dt.timedelta(days=1)
    midnight = dt.datetime.combine(tomorrow, dt.time.min)
    if now.tzinfo is not None:
        midnight = midnight.replace(tzinfo=now.astimezone().tzinfo)
    return midnight


def time_until_next_puzzle(now: Optional[dt.datetime] = None) -> dt.timedelta:
    now = now or dt.datetime.now()
    return next_puzzle_at(now) - now


def format_countdown(delta: dt.timedelta) -> str:
    total = max(0, int(delta.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
