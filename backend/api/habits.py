from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from auth.utils import get_current_user, user_timezone
from config import settings
from db.models import Habit, HabitLog, User
from services.habit_status import DEFAULT_STATUS
from services.habit_store import HabitStore, get_store
from services.recurrence import active_habits, normalize_days
from services.reminder_service import due_reminders
from services.streak_service import StreakSummary, habit_streak, streaks_by_habit
from utils.datetime_utils import format_date, now_for_tz, parse_local_date, today_for_tz

router = APIRouter(prefix="/habits", tags=["habits"])

Frequency = Literal["daily", "weekly", "custom"]
ReminderTime = Literal["none", "anytime", "morning", "afternoon", "evening"]


class HabitCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    category_id: int
    frequency: Frequency = "daily"
    start_day: Optional[int] = Field(default=None, ge=0, le=6)
    days_of_week: Optional[list[int]] = None
    reminder_time: Optional[ReminderTime] = None


class HabitUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    category_id: Optional[int] = None
    frequency: Optional[Frequency] = None
    start_day: Optional[int] = Field(default=None, ge=0, le=6)
    days_of_week: Optional[list[int]] = None
    reminder_time: Optional[ReminderTime] = None


class ToggleRequest(BaseModel):
    date: str
    status: Optional[str] = None


def habit_to_dict(habit: Habit) -> dict:
    return {
        "id": habit.id,
        "user_id": habit.user_id,
        "category_id": habit.category_id,
        "name": habit.name,
        "description": habit.description,
        "frequency": habit.frequency,
        "start_day": habit.start_day,
        "days_of_week": sorted(normalize_days(habit.days_of_week)) if habit.frequency == "custom" else None,
        "reminder_time": habit.reminder_time,
        "created_at": habit.created_at.isoformat() if habit.created_at else None,
    }


def log_to_dict(log: HabitLog) -> dict:
    return {
        "id": log.id,
        "habit_id": log.habit_id,
        "user_id": log.user_id,
        "date": format_date(log.date),
        "status": log.status,
    }


def streak_to_dict(summary: StreakSummary) -> dict:
    return {
        "habit_id": summary.habit_id,
        "current": summary.current,
        "longest": summary.longest,
        "last_completed": format_date(summary.last_completed) if summary.last_completed else None,
    }


def _validate_recurrence(frequency: str, start_day: int | None, days_of_week: list[int] | None) -> None:
    if frequency == "weekly" and start_day is None:
        raise HTTPException(status_code=400, detail="start_day is required for weekly habits")
    if frequency == "custom":
        if not days_of_week:
            raise HTTPException(status_code=400, detail="days_of_week is required for custom habits")
        if any(d < 0 or d > 6 for d in days_of_week):
            raise HTTPException(status_code=400, detail="days_of_week values must be between 0 (Monday) and 6 (Sunday)")


def _require_category(store: HabitStore, category_id: int) -> None:
    if not store.get_category(category_id):
        raise HTTPException(status_code=400, detail="Category does not exist")


def _require_habit(store: HabitStore, user: User, habit_id: int) -> Habit:
    habit = store.get_habit(user.id, habit_id)
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


@router.get("")
def list_habits(
    category_id: Optional[int] = Query(default=None),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    habits = store.list_habits(user.id)
    if category_id is not None:
        habits = [h for h in habits if h.category_id == category_id]
    return [habit_to_dict(h) for h in habits]


@router.post("", status_code=201)
def create_habit(
    req: HabitCreateRequest,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    _validate_recurrence(req.frequency, req.start_day, req.days_of_week)
    _require_category(store, req.category_id)
    habit = store.create_habit(
        user.id,
        name=req.name,
        description=req.description,
        category_id=req.category_id,
        frequency=req.frequency,
        start_day=req.start_day,
        days_of_week=req.days_of_week,
        reminder_time=req.reminder_time,
    )
    return habit_to_dict(habit)


@router.get("/today")
def list_habits_for_day(
    date: Optional[str] = Query(default=None),
    category_id: Optional[int] = Query(default=None),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    """Habits scheduled on the given day (default: today) with their status and streak as of that day."""
    day = parse_local_date(date) if date else today_for_tz(user_timezone(user))
    habits = store.list_habits(user.id)
    if category_id is not None:
        habits = [h for h in habits if h.category_id == category_id]
    scheduled = active_habits(habits, day)
    logs = store.get_logs_until(user.id, day)
    streaks = streaks_by_habit(scheduled, logs, today=day, mode=settings.streak_mode)
    status_on_day = {log.habit_id: log.status for log in logs if log.date == day}

    result = []
    for habit in scheduled:
        result.append({
            "habit": habit_to_dict(habit),
            "date": format_date(day),
            "status": status_on_day.get(habit.id, DEFAULT_STATUS.value),
            "streak": streaks[habit.id].current,
        })
    return result


@router.get("/reminders")
def list_due_reminders(
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    now = now_for_tz(user_timezone(user))
    habits = store.list_habits(user.id)
    logs = store.get_logs_by_date(user.id, now.date())
    return [habit_to_dict(h) for h in due_reminders(habits, logs, now)]


@router.get("/{habit_id}")
def get_habit(
    habit_id: int,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return habit_to_dict(_require_habit(store, user, habit_id))


@router.put("/{habit_id}")
def update_habit(
    habit_id: int,
    req: HabitUpdateRequest,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    habit = _require_habit(store, user, habit_id)
    fields = req.model_dump(exclude_unset=True)
    for key in ("name", "frequency", "category_id"):
        if fields.get(key) is None:
            fields.pop(key, None)
    frequency = fields.get("frequency") or habit.frequency
    start_day = fields["start_day"] if "start_day" in fields else habit.start_day
    days = fields["days_of_week"] if "days_of_week" in fields else sorted(normalize_days(habit.days_of_week))
    _validate_recurrence(frequency, start_day, days)
    if fields.get("category_id") is not None:
        _require_category(store, fields["category_id"])
    updated = store.update_habit(user.id, habit_id, **fields)
    return habit_to_dict(updated)


@router.delete("/{habit_id}", status_code=204)
def delete_habit(
    habit_id: int,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if not store.delete_habit(user.id, habit_id):
        raise HTTPException(status_code=404, detail="Habit not found")
    return Response(status_code=204)


@router.get("/{habit_id}/logs")
def get_habit_logs(
    habit_id: int,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    _require_habit(store, user, habit_id)
    return [log_to_dict(log) for log in store.get_habit_logs(user.id, habit_id)]


@router.get("/{habit_id}/streak")
def get_habit_streak(
    habit_id: int,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    habit = _require_habit(store, user, habit_id)
    today = today_for_tz(user_timezone(user))
    summary = habit_streak(habit, store.get_habit_logs(user.id, habit_id), today=today, mode=settings.streak_mode)
    return {**streak_to_dict(summary), "mode": settings.streak_mode}


@router.post("/{habit_id}/toggle")
def toggle_habit(
    habit_id: int,
    req: ToggleRequest,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    """Set the day's status, or cycle it when no status is given."""
    _require_habit(store, user, habit_id)
    day = parse_local_date(req.date)
    return log_to_dict(store.set_status(habit_id, user.id, day, req.status))
