from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from api.habits import log_to_dict
from auth.utils import get_current_user
from config import settings
from db.models import User
from services.habit_status import parse_status
from services.habit_store import HabitStore, get_store
from utils.datetime_utils import parse_local_date
from utils.errors import ValidationError

router = APIRouter(prefix="/habit-logs", tags=["habit-logs"])


class SetStatusRequest(BaseModel):
    habit_id: int
    date: str
    status: str


def parse_date_window(start_date: str, end_date: str):
    start = parse_local_date(start_date)
    end = parse_local_date(end_date)
    if end < start:
        raise ValidationError("end_date must not be before start_date")
    if (end - start).days + 1 > settings.STATS_MAX_RANGE_DAYS:
        raise ValidationError(f"Date range may not exceed {settings.STATS_MAX_RANGE_DAYS} days")
    return start, end


@router.get("")
def list_logs(
    date: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if start_date and end_date:
        start, end = parse_date_window(start_date, end_date)
        logs = store.get_logs_by_range(user.id, start, end)
    elif date:
        logs = store.get_logs_by_date(user.id, parse_local_date(date))
    else:
        raise HTTPException(status_code=400, detail="Either date or start_date and end_date are required")
    return [log_to_dict(log) for log in logs]


@router.put("")
def set_log_status(
    req: SetStatusRequest,
    user: User = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if not store.get_habit(user.id, req.habit_id):
        raise HTTPException(status_code=404, detail="Habit not found")
    day = parse_local_date(req.date)
    status = parse_status(req.status)
    return log_to_dict(store.set_status(req.habit_id, user.id, day, status))
