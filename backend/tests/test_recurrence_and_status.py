from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.habit_status import (  # noqa: E402
    HabitStatus,
    counts_toward_rate,
    next_status,
    parse_status,
    resolve_status,
)
from services.recurrence import active_habits, is_active_on, normalize_days  # noqa: E402
from utils.errors import ValidationError  # noqa: E402


MONDAY = date(2026, 3, 2)
FOUR_WEEKS = [MONDAY + timedelta(days=offset) for offset in range(28)]


def _habit(frequency, start_day=None, days_of_week=None, habit_id=1):
    return SimpleNamespace(id=habit_id, frequency=frequency, start_day=start_day, days_of_week=days_of_week)


def test_daily_habit_is_active_every_day():
    habit = _habit("daily", start_day=3, days_of_week="[1]")
    assert all(is_active_on(habit, d) for d in FOUR_WEEKS)


def test_weekly_habit_is_active_only_on_its_start_day():
    habit = _habit("weekly", start_day=2, days_of_week=[0, 1])
    for d in FOUR_WEEKS:
        assert is_active_on(habit, d) == (d.weekday() == 2)


def test_custom_habit_uses_days_of_week_from_list_or_json():
    listed = _habit("custom", start_day=5, days_of_week=[0, 3])
    stored = _habit("custom", days_of_week="[0, 3]")
    for d in FOUR_WEEKS:
        expected = d.weekday() in {0, 3}
        assert is_active_on(listed, d) == expected
        assert is_active_on(stored, d) == expected


def test_weekly_without_start_day_and_custom_without_days_are_never_active():
    assert not any(is_active_on(_habit("weekly"), d) for d in FOUR_WEEKS)
    assert not any(is_active_on(_habit("custom", days_of_week="[]"), d) for d in FOUR_WEEKS)


@pytest.mark.parametrize("frequency", [None, "", "monthly", "fortnightly"])
def test_unknown_frequency_fails_open(frequency):
    assert all(is_active_on(_habit(frequency), d) for d in FOUR_WEEKS)


def test_normalize_days_ignores_garbage():
    assert normalize_days("not json") == frozenset()
    assert normalize_days([0, "3", 9, -1, "x"]) == frozenset({0, 3})
    assert normalize_days(None) == frozenset()


def test_active_habits_filters_by_date():
    habits = [
        _habit("daily", habit_id=1),
        _habit("weekly", start_day=0, habit_id=2),
        _habit("custom", days_of_week=[1], habit_id=3),
    ]
    assert [h.id for h in active_habits(habits, MONDAY)] == [1, 2]
    assert [h.id for h in active_habits(habits, MONDAY + timedelta(days=1))] == [1, 3]


def test_toggle_cycle():
    assert next_status("complete") == HabitStatus.INCOMPLETE
    assert next_status("partial") == HabitStatus.COMPLETE
    assert next_status("incomplete") == HabitStatus.COMPLETE
    assert next_status("not_applicable") == HabitStatus.COMPLETE
    assert next_status(None) == HabitStatus.COMPLETE


def test_explicit_status_overrides_cycle():
    assert resolve_status("complete", "partial") == HabitStatus.PARTIAL
    assert resolve_status(None, "not_applicable") == HabitStatus.NOT_APPLICABLE
    assert resolve_status("complete") == HabitStatus.INCOMPLETE


def test_parse_status_rejects_unknown_values():
    assert parse_status(" Complete ") == HabitStatus.COMPLETE
    with pytest.raises(ValidationError):
        parse_status("done")
    with pytest.raises(ValidationError):
        resolve_status("complete", "skipped")


def test_not_applicable_is_excluded_from_rates():
    assert not counts_toward_rate("not_applicable")
    assert counts_toward_rate("incomplete")
    assert counts_toward_rate(HabitStatus.PARTIAL)
