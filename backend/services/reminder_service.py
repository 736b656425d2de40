from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from services.habit_status import HabitStatus
from services.recurrence import is_active_on

REMINDER_HOURS = {
    "morning": 8,
    "afternoon": 13,
    "evening": 19,
}
REMINDER_TIMES = ("none", "anytime", *REMINDER_HOURS)


def due_reminders(habits: Iterable[Any], logs: Iterable[Any], now: datetime) -> list[Any]:
    """Habits scheduled today whose reminder hour has passed and that are not yet complete."""
    today = now.date()
    done_today = {
        log.habit_id
        for log in logs
        if log.date == today and log.status == HabitStatus.COMPLETE
    }
    due: list[Any] = []
    for habit in habits:
        hour = REMINDER_HOURS.get((habit.reminder_time or "").strip().lower())
        if hour is None:
            continue
        if not is_active_on(habit, today):
            continue
        if habit.id in done_today:
            continue
        if now.hour >= hour:
            due.append(habit)
    return due
