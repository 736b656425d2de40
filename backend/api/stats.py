from dataclasses import asdict
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.habit_logs import parse_date_window
from api.habits import streak_to_dict
from auth.utils import get_current_user, user_timezone
from config import settings
from db.models import User
from services.aggregation_service import (
    category_rates,
    daily_snapshot,
    range_completion,
    trend_series,
    week_overview,
)
from services.habit_store import HabitStore, get_store
from services.streak_service import streaks_by_habit
from utils.datetime_utils import format_date, next_week, parse_local_date, previous_week, today_for_tz, week_range

router = APIRouter(prefix="/stats", tags=["stats"])


def _window(user: User, start_date: str | None, end_date: str | None) -> tuple[date, date]:
    if start_date and end_date:
        return parse_date_window(start_date, end_date)
    end = parse_local_date(end_date) if end_date else today_for_tz(user_timezone(user))
    start = parse_local_date(start_date) if start_date else end - timedelta(days=settings.STATS_DEFAULT_RANGE_DAYS - 1)
    return parse_date_window(format_date(start), format_date(end))


@router.get("/daily")
def get_daily_snapshot(
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    day = parse_local_date(date) if date else today_for_tz(user_timezone(user))
    snapshot = daily_snapshot(store.list_habits(user.id), store.get_logs_by_date(user.id, day), day)
    return snapshot.to_dict()


@router.get("/categories")
def get_category_rates(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    start, end = _window(user, start_date, end_date)
    rates = category_rates(
        store.list_categories(),
        store.list_habits(user.id),
        store.get_logs_by_range(user.id, start, end),
    )
    return {
        "start_date": format_date(start),
        "end_date": format_date(end),
        "categories": [asdict(rate) for rate in rates],
    }


@router.get("/trend")
def get_trend(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    bucket: str = Query(default="day"),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    start, end = _window(user, start_date, end_date)
    habits = store.list_habits(user.id)
    logs = store.get_logs_by_range(user.id, start, end)
    points = trend_series(habits, logs, start, end, bucket=bucket)
    overall = range_completion(habits, logs, start, end)
    return {
        "start_date": format_date(start),
        "end_date": format_date(end),
        "bucket": bucket,
        "completion_rate": overall.rate,
        "points": [p.to_dict() for p in points],
    }


@router.get("/week")
def get_week(
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    today = today_for_tz(user_timezone(user))
    week = week_range(parse_local_date(date) if date else today)
    days = week_overview(
        store.list_habits(user.id),
        store.get_logs_by_range(user.id, week.start, week.end),
        week,
        today,
    )
    return {
        "start": format_date(week.start),
        "end": format_date(week.end),
        "previous_start": format_date(previous_week(week.start).start),
        "next_start": format_date(next_week(week.start).start),
        "days": days,
    }


@router.get("/streaks")
def get_streaks(
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    today = today_for_tz(user_timezone(user))
    habits = store.list_habits(user.id)
    summaries = streaks_by_habit(habits, store.get_logs_until(user.id, today), today=today, mode=settings.streak_mode)
    return [{"name": habit.name, **streak_to_dict(summaries[habit.id])} for habit in habits]
