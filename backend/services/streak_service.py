from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from services.habit_status import HabitStatus
from services.recurrence import is_active_on
from utils.datetime_utils import date_range, today_utc

logger = logging.getLogger(__name__)

STREAK_MODES = ("calendar", "cadence")


@dataclass(frozen=True)
class StreakSummary:
    habit_id: int | None
    current: int
    longest: int
    last_completed: date | None


def _previous_tracked_day(current: date, skipped: set[date]) -> date:
    candidate = current - timedelta(days=1)
    while candidate in skipped:
        candidate -= timedelta(days=1)
    return candidate


def current_streak(
    completed_dates: Iterable[date],
    skipped_dates: Iterable[date] = (),
    today: date | None = None,
    *,
    skip_aware_grace: bool = False,
) -> int:
    """
    Count consecutive completed days ending at today or the day before.

    Days in ``skipped_dates`` are transparent: they neither extend nor break
    the run. The anchor is the most recent non-skipped day at or before
    today; the newest completion must be the anchor or the calendar day
    before it. With ``skip_aware_grace`` the second option becomes the
    previous non-skipped day instead.
    """
    today = today or today_utc()
    ordered = sorted({d for d in completed_dates if d <= today}, reverse=True)
    if not ordered:
        return 0
    skipped = set(skipped_dates)

    anchor = today
    while anchor in skipped:
        anchor -= timedelta(days=1)
    grace = _previous_tracked_day(anchor, skipped) if skip_aware_grace else anchor - timedelta(days=1)

    most_recent = ordered[0]
    if most_recent != anchor and most_recent != grace:
        return 0

    streak = 1
    cursor = most_recent
    for completed in ordered[1:]:
        if completed != _previous_tracked_day(cursor, skipped):
            break
        streak += 1
        cursor = completed
    return streak


def longest_streak(completed_dates: Iterable[date], skipped_dates: Iterable[date] = ()) -> int:
    ordered = sorted(set(completed_dates))
    if not ordered:
        return 0
    skipped = set(skipped_dates)
    best = run = 1
    for prev, current in zip(ordered, ordered[1:]):
        if _previous_tracked_day(current, skipped) == prev:
            run += 1
        else:
            run = 1
        best = max(best, run)
    return best


def _streak_inputs(habit: Any, logs: Iterable[Any], today: date, mode: str) -> tuple[set[date], set[date]]:
    habit_id = getattr(habit, "id", None)
    completed: set[date] = set()
    skipped: set[date] = set()
    for log in logs:
        if habit_id is not None and getattr(log, "habit_id", None) != habit_id:
            continue
        if log.date > today:
            continue
        if log.status == HabitStatus.COMPLETE:
            completed.add(log.date)
        elif log.status == HabitStatus.NOT_APPLICABLE:
            skipped.add(log.date)

    if mode == "cadence" and completed:
        oldest = min(completed)
        for day in date_range(oldest, today):
            if day not in completed and not is_active_on(habit, day):
                skipped.add(day)
    return completed, skipped


def habit_streak(habit: Any, logs: Iterable[Any], today: date | None = None, mode: str = "calendar") -> StreakSummary:
    if mode not in STREAK_MODES:
        logger.warning("Unknown streak mode %r, using calendar contiguity", mode)
        mode = "calendar"
    today = today or today_utc()
    completed, skipped = _streak_inputs(habit, logs, today, mode)
    return StreakSummary(
        habit_id=getattr(habit, "id", None),
        current=current_streak(completed, skipped, today, skip_aware_grace=(mode == "cadence")),
        longest=longest_streak(completed, skipped),
        last_completed=max(completed) if completed else None,
    )


def streaks_by_habit(
    habits: Iterable[Any],
    logs: Iterable[Any],
    today: date | None = None,
    mode: str = "calendar",
) -> dict[Any, StreakSummary]:
    """Streak summaries for several habits from one batch of logs, keyed by habit id."""
    grouped: dict[Any, list[Any]] = defaultdict(list)
    for log in logs:
        grouped[log.habit_id].append(log)
    return {habit.id: habit_streak(habit, grouped.get(habit.id, []), today=today, mode=mode) for habit in habits}
