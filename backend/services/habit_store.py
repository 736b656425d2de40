"""
Persistence boundary for categories, habits and habit logs.

Request handlers receive a ``HabitStore`` through the ``get_store``
dependency; nothing here keeps process-wide state.
"""
from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Iterable

from fastapi import Depends
from sqlalchemy import case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from config import settings
from db.database import get_db
from db.models import Category, Habit, HabitLog
from services.habit_status import HabitStatus, parse_status, resolve_status

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def encode_days(days: Iterable[int] | None) -> str | None:
    if days is None:
        return None
    return json.dumps(sorted({int(d) for d in days}))


class HabitStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # --- Categories ---

    def list_categories(self) -> list[Category]:
        return self.db.query(Category).order_by(Category.id.asc()).all()

    def get_category(self, category_id: int) -> Category | None:
        return self.db.query(Category).filter(Category.id == category_id).first()

    def get_category_by_name(self, name: str) -> Category | None:
        return self.db.query(Category).filter(Category.name == name).first()

    def create_category(self, name: str, color: str | None = None) -> Category:
        category = Category(name=name.strip(), color=color or settings.DEFAULT_CATEGORY_COLOR)
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        return category

    def update_category(self, category_id: int, **fields: Any) -> Category | None:
        category = self.get_category(category_id)
        if not category:
            return None
        for key in ("name", "color"):
            if fields.get(key) is not None:
                setattr(category, key, fields[key])
        self.db.commit()
        self.db.refresh(category)
        return category

    def category_in_use(self, category_id: int) -> bool:
        return self.db.query(Habit.id).filter(Habit.category_id == category_id).first() is not None

    def delete_category(self, category_id: int) -> bool:
        category = self.get_category(category_id)
        if not category:
            return False
        self.db.delete(category)
        self.db.commit()
        return True

    def ensure_default_categories(self) -> int:
        if self.db.query(Category.id).first() is not None:
            return 0
        for name, color in settings.DEFAULT_CATEGORIES.items():
            self.db.add(Category(name=name, color=color))
        self.db.commit()
        return len(settings.DEFAULT_CATEGORIES)

    # --- Habits ---

    def list_habits(self, user_id: int) -> list[Habit]:
        return self.db.query(Habit).filter(Habit.user_id == user_id).order_by(Habit.id.desc()).all()

    def get_habit(self, user_id: int, habit_id: int) -> Habit | None:
        return self.db.query(Habit).filter(Habit.id == habit_id, Habit.user_id == user_id).first()

    def create_habit(
        self,
        user_id: int,
        *,
        name: str,
        category_id: int,
        frequency: str = "daily",
        description: str | None = None,
        start_day: int | None = None,
        days_of_week: Iterable[int] | None = None,
        reminder_time: str | None = None,
    ) -> Habit:
        habit = Habit(
            user_id=user_id,
            category_id=category_id,
            name=name.strip(),
            description=description,
            frequency=frequency,
            start_day=start_day if frequency == "weekly" else None,
            days_of_week=encode_days(days_of_week) if frequency == "custom" else None,
            reminder_time=reminder_time,
        )
        self.db.add(habit)
        self.db.commit()
        self.db.refresh(habit)
        logger.info("Created habit %s (%s) for user %s", habit.id, frequency, user_id)
        return habit

    def update_habit(self, user_id: int, habit_id: int, **fields: Any) -> Habit | None:
        habit = self.get_habit(user_id, habit_id)
        if not habit:
            return None
        for key in ("name", "description", "category_id", "frequency", "start_day", "reminder_time"):
            if key in fields:
                setattr(habit, key, fields[key])
        if "days_of_week" in fields:
            habit.days_of_week = encode_days(fields["days_of_week"])
        # Keep only the recurrence field that matches the frequency.
        if habit.frequency != "weekly":
            habit.start_day = None
        if habit.frequency != "custom":
            habit.days_of_week = None
        self.db.commit()
        self.db.refresh(habit)
        return habit

    def delete_habit(self, user_id: int, habit_id: int) -> bool:
        habit = self.get_habit(user_id, habit_id)
        if not habit:
            return False
        self.db.delete(habit)
        self.db.commit()
        logger.info("Deleted habit %s and its logs for user %s", habit_id, user_id)
        return True

    # --- Logs ---

    def get_log(self, habit_id: int, user_id: int, d: date) -> HabitLog | None:
        return (
            self.db.query(HabitLog)
            .filter(HabitLog.habit_id == habit_id, HabitLog.user_id == user_id, HabitLog.date == d)
            .first()
        )

    def get_habit_logs(self, user_id: int, habit_id: int) -> list[HabitLog]:
        return (
            self.db.query(HabitLog)
            .filter(HabitLog.habit_id == habit_id, HabitLog.user_id == user_id)
            .order_by(HabitLog.date.asc())
            .all()
        )

    def get_logs_by_date(self, user_id: int, d: date) -> list[HabitLog]:
        return (
            self.db.query(HabitLog)
            .filter(HabitLog.user_id == user_id, HabitLog.date == d)
            .order_by(HabitLog.habit_id.asc())
            .all()
        )

    def get_logs_by_range(self, user_id: int, start: date, end: date) -> list[HabitLog]:
        return (
            self.db.query(HabitLog)
            .filter(HabitLog.user_id == user_id, HabitLog.date >= start, HabitLog.date <= end)
            .order_by(HabitLog.date.asc(), HabitLog.habit_id.asc())
            .all()
        )

    def get_logs_until(self, user_id: int, end: date) -> list[HabitLog]:
        """Every log dated on or before ``end``."""
        return (
            self.db.query(HabitLog)
            .filter(HabitLog.user_id == user_id, HabitLog.date <= end)
            .order_by(HabitLog.date.asc(), HabitLog.habit_id.asc())
            .all()
        )

    def set_status(
        self,
        habit_id: int,
        user_id: int,
        d: date,
        status: str | HabitStatus | None = None,
    ) -> HabitLog:
        """
        Insert-or-update the log keyed on (habit_id, user_id, date).

        With ``status`` omitted the stored status is cycled. The cycle is
        evaluated against the existing row inside the conflict clause, so
        concurrent writers never create duplicates and the last one wins.
        """
        requested = parse_status(status).value if status is not None else None
        insert_fn = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
        if insert_fn is None:
            return self._set_status_fallback(habit_id, user_id, d, requested)

        table = HabitLog.__table__
        now = datetime.utcnow()
        stmt = insert_fn(table).values(
            habit_id=habit_id,
            user_id=user_id,
            date=d,
            status=requested or resolve_status(None).value,
            created_at=now,
            updated_at=now,
        )
        if requested is not None:
            new_status = stmt.excluded.status
        else:
            new_status = case(
                (table.c.status == HabitStatus.COMPLETE.value, HabitStatus.INCOMPLETE.value),
                else_=HabitStatus.COMPLETE.value,
            )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.habit_id, table.c.user_id, table.c.date],
            set_={"status": new_status, "updated_at": now},
        )
        self.db.execute(stmt)
        self.db.commit()
        log = self.get_log(habit_id, user_id, d)
        logger.debug("Habit %s on %s for user %s -> %s", habit_id, d, user_id, log.status if log else None)
        return log

    def _set_status_fallback(self, habit_id: int, user_id: int, d: date, requested: str | None) -> HabitLog:
        log = self.get_log(habit_id, user_id, d)
        if log:
            log.status = resolve_status(log.status, requested).value
        else:
            log = HabitLog(habit_id=habit_id, user_id=user_id, date=d, status=resolve_status(None, requested).value)
            self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log


def get_store(db: Session = Depends(get_db)) -> HabitStore:
    return HabitStore(db)
