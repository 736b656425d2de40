"""
Offline demo fixture generator.

Creates a ``demo`` user with a handful of habits and a week or more of
randomised logs. Never runs as part of the web app.

    python seed_demo.py --days 14 --seed 7
"""
import argparse
import logging
import random
from datetime import date, timedelta

from sqlalchemy.orm import Session

from auth.utils import hash_password, normalize_username
from db.database import Base, SessionLocal, engine, run_startup_migrations
from db.models import User
from services.habit_status import HabitStatus
from services.habit_store import HabitStore
from services.recurrence import is_active_on
from utils.datetime_utils import today_utc

logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo"
DEMO_PASSWORD = "demo1234"

DEMO_HABITS = [
    {"name": "Drink 2L of water", "category": "Health", "frequency": "daily", "reminder_time": "anytime"},
    {"name": "Read for 30 minutes", "category": "Learning", "frequency": "daily", "reminder_time": "evening"},
    {"name": "Meditate for 10 minutes", "category": "Wellness", "frequency": "daily", "reminder_time": "morning"},
    {"name": "Weekly review", "category": "Productivity", "frequency": "weekly", "start_day": 6},
    {"name": "Strength training", "category": "Health", "frequency": "custom", "days_of_week": [0, 2, 4]},
]


def seed_demo_data(db: Session, *, days: int = 7, seed: int | None = None, today: date | None = None) -> User:
    rng = random.Random(seed)
    today = today or today_utc()
    store = HabitStore(db)
    store.ensure_default_categories()

    normalized = normalize_username(DEMO_USERNAME)
    user = db.query(User).filter(User.username_normalized == normalized).first()
    if user:
        logger.info("Demo user already exists (id=%s); skipping", user.id)
        return user

    user = User(
        username=DEMO_USERNAME,
        username_normalized=normalized,
        password_hash=hash_password(DEMO_PASSWORD),
        display_name="Demo User",
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    categories = {c.name: c for c in store.list_categories()}
    fallback = next(iter(categories.values()))
    for entry in DEMO_HABITS:
        habit = store.create_habit(
            user.id,
            name=entry["name"],
            category_id=categories.get(entry["category"], fallback).id,
            frequency=entry["frequency"],
            start_day=entry.get("start_day"),
            days_of_week=entry.get("days_of_week"),
            reminder_time=entry.get("reminder_time"),
        )
        for offset in range(days):
            day = today - timedelta(days=offset)
            if not is_active_on(habit, day):
                continue
            # Older days are a little more likely to be complete.
            roll = rng.random()
            if roll < 0.65 - offset * 0.02:
                status = HabitStatus.COMPLETE
            elif roll < 0.75:
                status = HabitStatus.PARTIAL
            elif roll < 0.82:
                status = HabitStatus.NOT_APPLICABLE
            else:
                continue
            store.set_status(habit.id, user.id, day, status)
    logger.info("Seeded demo user %s with %d habits over %d days", user.id, len(DEMO_HABITS), days)
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate demo habits and logs")
    parser.add_argument("--days", type=int, default=7, help="How many past days to fill")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible fixtures")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    run_startup_migrations()
    db = SessionLocal()
    try:
        seed_demo_data(db, days=max(args.days, 1), seed=args.seed)
    finally:
        db.close()


if __name__ == "__main__":
    main()
