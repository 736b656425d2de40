from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path
from types import SimpleNamespace


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.reminder_service import due_reminders  # noqa: E402


MONDAY = date(2026, 3, 2)


def _habit(habit_id, reminder_time, frequency="daily", start_day=None):
    return SimpleNamespace(
        id=habit_id,
        reminder_time=reminder_time,
        frequency=frequency,
        start_day=start_day,
        days_of_week=None,
    )


def _log(habit_id, status, d=MONDAY):
    return SimpleNamespace(habit_id=habit_id, date=d, status=status)


def test_reminders_fire_once_the_hour_has_passed():
    habits = [_habit(1, "morning"), _habit(2, "afternoon"), _habit(3, "evening")]
    at_two_pm = datetime(2026, 3, 2, 14, 0)
    assert [h.id for h in due_reminders(habits, [], at_two_pm)] == [1, 2]
    assert due_reminders(habits, [], datetime(2026, 3, 2, 7, 59)) == []


def test_completed_or_unscheduled_habits_are_not_due():
    habits = [
        _habit(1, "morning"),
        _habit(2, "morning"),
        _habit(3, "morning", frequency="weekly", start_day=2),
        _habit(4, "none"),
        _habit(5, "anytime"),
        _habit(6, None),
    ]
    logs = [
        _log(1, "complete"),
        _log(2, "partial"),
        _log(3, "incomplete"),
        _log(2, "complete", d=date(2026, 3, 1)),
    ]
    due = due_reminders(habits, logs, datetime(2026, 3, 2, 20, 30))
    assert [h.id for h in due] == [2]
