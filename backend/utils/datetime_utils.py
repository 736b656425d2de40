import re
from dataclasses import dataclass
from datetime import datetime, date, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

from utils.errors import ValidationError

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class WeekRange:
    start: date
    end: date
    days: tuple[date, ...]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def today_for_tz(tz_name: str | None) -> date:
    """Return today's date in the user's timezone."""
    if tz_name:
        try:
            return datetime.now(ZoneInfo(tz_name)).date()
        except Exception:
            pass
    return today_utc()


def now_for_tz(tz_name: str | None) -> datetime:
    if tz_name:
        try:
            return datetime.now(ZoneInfo(tz_name))
        except Exception:
            pass
    return utcnow()


def parse_local_date(value) -> date:
    """
    Interpret a ``YYYY-MM-DD`` string as a calendar date.

    Only the year, month and day components are used; no timezone conversion
    is ever applied, so the date cannot drift by a day. Anything else is
    rejected rather than defaulting to today.
    """
    if isinstance(value, datetime):
        raise ValidationError("Expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError("Date must be a YYYY-MM-DD string")
    match = ISO_DATE_RE.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}': {exc}") from exc


def format_date(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def weekday_index(d: date) -> int:
    """Monday=0 .. Sunday=6."""
    return d.weekday()


def start_of_week(d: date) -> date:
    """Return Monday of the week containing d."""
    return d - timedelta(days=weekday_index(d))


def week_range(d: date) -> WeekRange:
    start = start_of_week(d)
    days = tuple(start + timedelta(days=offset) for offset in range(7))
    return WeekRange(start=start, end=days[-1], days=days)


def current_week(today: date | None = None) -> WeekRange:
    return week_range(today or today_utc())


def previous_week(current_start: date) -> WeekRange:
    return week_range(current_start - timedelta(days=7))


def next_week(current_start: date) -> WeekRange:
    return week_range(current_start + timedelta(days=7))


def is_today(d: date, today: date | None = None) -> bool:
    return d == (today or today_utc())


def date_range(start: date, end: date) -> Iterator[date]:
    """Inclusive day iterator; yields nothing when end precedes start."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def short_label(d: date) -> str:
    return f"{d.strftime('%b')} {d.day}"
