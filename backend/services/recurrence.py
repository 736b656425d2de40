"""
Single source of truth for "is this habit trackable on this date".

Every view that needs the active habit set for a date (today list, daily
progress, trend denominators, reminders, cadence-aware streaks) must go
through ``is_active_on``.
"""
from __future__ import annotations

import json
from datetime import date
from typing import Any, Iterable

from utils.datetime_utils import weekday_index

FREQUENCIES = ("daily", "weekly", "custom")


def normalize_days(raw: Any) -> frozenset[int]:
    """Coerce a stored days-of-week value (list, set, or JSON text) into weekday indexes."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError):
            return frozenset()
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()
    days: set[int] = set()
    for value in raw:
        try:
            idx = int(value)
        except (TypeError, ValueError):
            continue
        if 0 <= idx <= 6:
            days.add(idx)
    return frozenset(days)


def is_active_on(habit: Any, d: date) -> bool:
    frequency = (getattr(habit, "frequency", None) or "").strip().lower()
    day_index = weekday_index(d)

    if frequency == "daily":
        return True
    if frequency == "weekly":
        start_day = getattr(habit, "start_day", None)
        return start_day is not None and int(start_day) == day_index
    if frequency == "custom":
        return day_index in normalize_days(getattr(habit, "days_of_week", None))
    # Unknown or unset frequency: show the habit rather than hide it.
    return True


def active_habits(habits: Iterable[Any], d: date) -> list[Any]:
    return [h for h in habits if is_active_on(h, d)]
