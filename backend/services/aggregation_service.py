"""
Completion statistics over habits and their logs.

All functions take already-fetched, single-user data and return plain
dataclasses. A habit with no log on a day it is active counts as
incomplete; a habit inactive on a day contributes nothing to that day.
Logs that reference a habit not in ``habits`` are skipped.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from services.habit_status import HabitStatus, counts_toward_rate
from services.recurrence import is_active_on
from utils.datetime_utils import WeekRange, date_range, format_date, is_today, short_label, start_of_week
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

TREND_BUCKETS = ("day", "week")


@dataclass(frozen=True)
class DailySnapshot:
    date: date
    total_active: int
    complete: int
    partial: int
    not_applicable: int
    incomplete: int
    completion_rate: float

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["date"] = format_date(self.date)
        return payload


@dataclass(frozen=True)
class CategoryRate:
    category_id: int
    name: str
    color: str
    complete: int
    partial: int
    incomplete: int
    not_applicable: int
    total: int
    rate: float


@dataclass(frozen=True)
class TrendPoint:
    date: date
    end: date
    label: str
    complete: int
    partial: int
    not_applicable: int
    active: int
    rate: float

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["date"] = format_date(self.date)
        payload["end"] = format_date(self.end)
        return payload


@dataclass(frozen=True)
class RangeCompletion:
    start: date
    end: date
    complete: int
    denominator: int
    rate: float


def _ratio(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator, 4)


def _habit_index(habits: Iterable[Any]) -> dict[Any, Any]:
    return {h.id: h for h in habits}


def _logs_by_day(logs: Iterable[Any], known_habits: dict[Any, Any]) -> dict[date, dict[Any, Any]]:
    """Index logs as {date: {habit_id: log}}, dropping logs of unknown habits."""
    grouped: dict[date, dict[Any, Any]] = defaultdict(dict)
    for log in logs:
        if log.habit_id not in known_habits:
            logger.debug("Skipping log %s for unknown habit %s", getattr(log, "id", None), log.habit_id)
            continue
        grouped[log.date][log.habit_id] = log
    return grouped


def _snapshot_from_index(habits: list[Any], day_logs: dict[Any, Any], d: date) -> DailySnapshot:
    complete = partial = not_applicable = incomplete = 0
    total_active = 0
    for habit in habits:
        if not is_active_on(habit, d):
            continue
        total_active += 1
        log = day_logs.get(habit.id)
        status = log.status if log is not None else HabitStatus.INCOMPLETE
        if status == HabitStatus.COMPLETE:
            complete += 1
        elif status == HabitStatus.PARTIAL:
            partial += 1
        elif status == HabitStatus.NOT_APPLICABLE:
            not_applicable += 1
        else:
            incomplete += 1
    effective = max(total_active - not_applicable, 0)
    return DailySnapshot(
        date=d,
        total_active=total_active,
        complete=complete,
        partial=partial,
        not_applicable=not_applicable,
        incomplete=incomplete,
        completion_rate=_ratio(complete, effective),
    )


def daily_snapshot(habits: Iterable[Any], logs: Iterable[Any], d: date) -> DailySnapshot:
    habit_list = list(habits)
    index = _logs_by_day(logs, _habit_index(habit_list))
    return _snapshot_from_index(habit_list, index.get(d, {}), d)


def completion_rate(logs: Iterable[Any]) -> float:
    """complete / (complete + partial + incomplete); not_applicable is excluded entirely."""
    complete = actionable = 0
    for log in logs:
        if not counts_toward_rate(log.status):
            continue
        actionable += 1
        if log.status == HabitStatus.COMPLETE:
            complete += 1
    return _ratio(complete, actionable)


def range_completion(habits: Iterable[Any], logs: Iterable[Any], start: date, end: date) -> RangeCompletion:
    habit_list = list(habits)
    index = _logs_by_day(logs, _habit_index(habit_list))
    complete = denominator = 0
    for day in date_range(start, end):
        snap = _snapshot_from_index(habit_list, index.get(day, {}), day)
        complete += snap.complete
        denominator += max(snap.total_active - snap.not_applicable, 0)
    return RangeCompletion(
        start=start,
        end=end,
        complete=complete,
        denominator=denominator,
        rate=_ratio(complete, denominator),
    )


def category_rates(categories: Iterable[Any], habits: Iterable[Any], logs: Iterable[Any]) -> list[CategoryRate]:
    habit_list = list(habits)
    category_of = {h.id: h.category_id for h in habit_list}
    counts: dict[Any, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for log in logs:
        category_id = category_of.get(log.habit_id)
        if category_id is None:
            continue
        counts[category_id][str(getattr(log.status, "value", log.status))] += 1

    result: list[CategoryRate] = []
    for category in categories:
        bucket = counts.get(category.id, {})
        complete = bucket.get(HabitStatus.COMPLETE.value, 0)
        partial = bucket.get(HabitStatus.PARTIAL.value, 0)
        incomplete = bucket.get(HabitStatus.INCOMPLETE.value, 0)
        total = complete + partial + incomplete
        result.append(
            CategoryRate(
                category_id=category.id,
                name=category.name,
                color=category.color,
                complete=complete,
                partial=partial,
                incomplete=incomplete,
                not_applicable=bucket.get(HabitStatus.NOT_APPLICABLE.value, 0),
                total=total,
                rate=_ratio(complete, total),
            )
        )
    return result


def _bucket_windows(start: date, end: date, bucket: str) -> list[tuple[date, date]]:
    if bucket == "day":
        return [(d, d) for d in date_range(start, end)]
    windows: list[tuple[date, date]] = []
    cursor = start
    while cursor <= end:
        bucket_end = min(start_of_week(cursor) + timedelta(days=6), end)
        windows.append((cursor, bucket_end))
        cursor = bucket_end + timedelta(days=1)
    return windows


def trend_series(
    habits: Iterable[Any],
    logs: Iterable[Any],
    start: date,
    end: date,
    bucket: str = "day",
) -> list[TrendPoint]:
    if bucket not in TREND_BUCKETS:
        raise ValidationError(f"Unknown trend bucket '{bucket}', expected one of {', '.join(TREND_BUCKETS)}")
    habit_list = list(habits)
    if not habit_list:
        return []
    index = _logs_by_day(logs, _habit_index(habit_list))

    points: list[TrendPoint] = []
    for window_start, window_end in _bucket_windows(start, end, bucket):
        complete = partial = not_applicable = active = 0
        for day in date_range(window_start, window_end):
            snap = _snapshot_from_index(habit_list, index.get(day, {}), day)
            complete += snap.complete
            partial += snap.partial
            not_applicable += snap.not_applicable
            active += max(snap.total_active - snap.not_applicable, 0)
        points.append(
            TrendPoint(
                date=window_start,
                end=window_end,
                label=short_label(window_start),
                complete=complete,
                partial=partial,
                not_applicable=not_applicable,
                active=active,
                rate=_ratio(complete, active),
            )
        )
    return points


def day_status(logs_for_day: Iterable[Any]) -> str:
    statuses = [str(getattr(log.status, "value", log.status)) for log in logs_for_day]
    if not statuses:
        return "none"
    for candidate in (HabitStatus.NOT_APPLICABLE, HabitStatus.COMPLETE, HabitStatus.INCOMPLETE):
        if all(s == candidate.value for s in statuses):
            return candidate.value
    return HabitStatus.PARTIAL.value


def week_overview(habits: Iterable[Any], logs: Iterable[Any], week: WeekRange, today: date) -> list[dict[str, Any]]:
    habit_list = list(habits)
    index = _logs_by_day(logs, _habit_index(habit_list))
    days: list[dict[str, Any]] = []
    for day in week.days:
        day_logs = index.get(day, {})
        snap = _snapshot_from_index(habit_list, day_logs, day)
        days.append({
            "date": format_date(day),
            "status": day_status(day_logs.values()),
            "is_today": is_today(day, today),
            "snapshot": snap.to_dict(),
        })
    return days
