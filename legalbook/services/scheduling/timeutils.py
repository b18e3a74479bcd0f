"""Conversions into the canonical scheduling timezone.

Every timestamp the core stores or compares is a naive ``datetime`` whose
wall-clock value is in ``settings.TIMEZONE``.
"""
from datetime import date, datetime, time
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def to_canonical(value: datetime, tz: ZoneInfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(microsecond=0)
    return value.astimezone(tz).replace(tzinfo=None, microsecond=0)


def make_clock(tz: ZoneInfo) -> Clock:
    def now() -> datetime:
        return datetime.now(tz).replace(tzinfo=None)
    return now


def at(day: date, clock_time: time) -> datetime:
    return datetime.combine(day, clock_time)


def format_time_range(start: datetime, end: datetime) -> str:
    """'09:00 AM - 10:00 AM'"""
    return f"{start.strftime('%I:%M %p')} - {end.strftime('%I:%M %p')}"
