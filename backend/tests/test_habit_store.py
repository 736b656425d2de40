from __future__ import annotations

import sys
import threading
from datetime import date, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base, run_startup_migrations  # noqa: E402
from db.models import Habit, HabitLog, User  # noqa: E402
from seed_demo import DEMO_HABITS, seed_demo_data  # noqa: E402
from services.habit_status import VALID_STATUSES  # noqa: E402
from services.habit_store import HabitStore  # noqa: E402
from services.recurrence import is_active_on  # noqa: E402
from utils.errors import ValidationError  # noqa: E402


MONDAY = date(2026, 3, 2)


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username="store_tester") -> User:
    user = User(
        username=username,
        username_normalized=username.lower(),
        password_hash="hash",
        display_name="Store Tester",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _setup(db, username="store_tester"):
    store = HabitStore(db)
    store.ensure_default_categories()
    user = _new_user(db, username)
    category = store.get_category_by_name("Health")
    habit = store.create_habit(user.id, name="Walk", category_id=category.id)
    return store, user, habit


def test_ensure_default_categories_only_seeds_empty_table():
    db = _new_db()
    store = HabitStore(db)
    assert store.ensure_default_categories() == 4
    assert store.ensure_default_categories() == 0
    assert [c.name for c in store.list_categories()] == ["Health", "Productivity", "Learning", "Wellness"]


def test_set_status_upserts_a_single_row_per_day():
    db = _new_db()
    store, user, habit = _setup(db)

    first = store.set_status(habit.id, user.id, MONDAY, "partial")
    second = store.set_status(habit.id, user.id, MONDAY, "not_applicable")

    assert first.id == second.id
    assert second.status == "not_applicable"
    assert db.query(HabitLog).filter(HabitLog.habit_id == habit.id).count() == 1


def test_set_status_without_status_cycles_the_stored_value():
    db = _new_db()
    store, user, habit = _setup(db)

    assert store.set_status(habit.id, user.id, MONDAY).status == "complete"
    assert store.set_status(habit.id, user.id, MONDAY).status == "incomplete"
    assert store.set_status(habit.id, user.id, MONDAY).status == "complete"

    store.set_status(habit.id, user.id, MONDAY, "partial")
    assert store.set_status(habit.id, user.id, MONDAY).status == "complete"

    store.set_status(habit.id, user.id, MONDAY, "not_applicable")
    assert store.set_status(habit.id, user.id, MONDAY).status == "complete"
    assert db.query(HabitLog).count() == 1


def test_concurrent_writers_keep_a_single_row(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'habits.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup_db = SessionFactory()
    _, user, habit = _setup(setup_db)
    habit_id, user_id = habit.id, user.id
    setup_db.close()

    workers, rounds = 8, 20
    explicit = ("partial", "complete", "not_applicable", "incomplete")
    barrier = threading.Barrier(workers)
    errors: list[BaseException] = []

    def _writer(worker: int) -> None:
        db = SessionFactory()
        try:
            store = HabitStore(db)
            barrier.wait()
            for i in range(rounds):
                status = None if (worker + i) % 2 else explicit[i % len(explicit)]
                store.set_status(habit_id, user_id, MONDAY, status)
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=_writer, args=(n,)) for n in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    check_db = SessionFactory()
    rows = check_db.query(HabitLog).filter(HabitLog.habit_id == habit_id, HabitLog.date == MONDAY).all()
    assert len(rows) == 1
    assert rows[0].status in VALID_STATUSES

    # Once the writers are done the next write decides the stored value.
    assert HabitStore(check_db).set_status(habit_id, user_id, MONDAY, "partial").status == "partial"
    check_db.close()
    engine.dispose()

def test_set_status_rejects_unknown_status():
    db = _new_db()
    store, user, habit = _setup(db)
    with pytest.raises(ValidationError):
        store.set_status(habit.id, user.id, MONDAY, "done")
    assert store.get_log(habit.id, user.id, MONDAY) is None


def test_logs_by_range_includes_both_bounds():
    db = _new_db()
    store, user, habit = _setup(db)
    for offset in range(-1, 8):
        store.set_status(habit.id, user.id, MONDAY + timedelta(days=offset), "complete")

    logs = store.get_logs_by_range(user.id, MONDAY, MONDAY + timedelta(days=6))
    assert [log.date for log in logs] == [MONDAY + timedelta(days=i) for i in range(7)]
    assert len(store.get_logs_by_date(user.id, MONDAY)) == 1


def test_reads_are_scoped_to_the_owning_user():
    db = _new_db()
    store, alice, habit = _setup(db, "alice")
    bob = _new_user(db, "bob")
    store.set_status(habit.id, alice.id, MONDAY, "complete")

    assert store.get_habit(bob.id, habit.id) is None
    assert store.list_habits(bob.id) == []
    assert store.get_logs_by_date(bob.id, MONDAY) == []
    assert store.delete_habit(bob.id, habit.id) is False


def test_delete_habit_removes_its_logs():
    db = _new_db()
    store, user, habit = _setup(db)
    other = store.create_habit(user.id, name="Stretch", category_id=habit.category_id)
    for offset in range(3):
        store.set_status(habit.id, user.id, MONDAY + timedelta(days=offset), "complete")
    store.set_status(other.id, user.id, MONDAY, "partial")

    assert store.delete_habit(user.id, habit.id) is True
    assert db.query(HabitLog).filter(HabitLog.habit_id == habit.id).count() == 0
    assert [log.habit_id for log in store.get_logs_by_date(user.id, MONDAY)] == [other.id]


def test_update_habit_keeps_only_matching_recurrence_fields():
    db = _new_db()
    store, user, habit = _setup(db)
    custom = store.create_habit(
        user.id,
        name="Gym",
        category_id=habit.category_id,
        frequency="custom",
        days_of_week=[4, 0, 2, 2],
        start_day=3,
    )
    assert custom.days_of_week == "[0, 2, 4]"
    assert custom.start_day is None

    updated = store.update_habit(user.id, custom.id, frequency="weekly", start_day=5)
    assert updated.start_day == 5
    assert updated.days_of_week is None
    assert is_active_on(updated, MONDAY + timedelta(days=5))

    updated = store.update_habit(user.id, custom.id, frequency="daily")
    assert updated.start_day is None
    assert store.update_habit(user.id, 9999, name="nope") is None


def test_category_in_use_and_delete():
    db = _new_db()
    store, user, habit = _setup(db)
    assert store.category_in_use(habit.category_id) is True
    spare = store.create_category("Finance")
    assert spare.color == "#6366f1"
    assert store.category_in_use(spare.id) is False
    assert store.delete_category(spare.id) is True
    assert store.get_category(spare.id) is None
    assert store.delete_category(spare.id) is False


def test_startup_migrations_upgrade_legacy_tables():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE habits (id INTEGER PRIMARY KEY, user_id INTEGER, category_id INTEGER, "
            "name TEXT, description TEXT, frequency TEXT, created_at DATETIME)"
        ))
        conn.execute(text(
            "CREATE TABLE habit_logs (id INTEGER PRIMARY KEY, habit_id INTEGER, user_id INTEGER, "
            "date DATE, completed BOOLEAN, created_at DATETIME, updated_at DATETIME)"
        ))
        conn.execute(text("INSERT INTO habit_logs (habit_id, user_id, date, completed) VALUES (1, 1, '2026-03-02', 1)"))
        conn.execute(text("INSERT INTO habit_logs (habit_id, user_id, date, completed) VALUES (1, 1, '2026-03-03', 0)"))

    run_startup_migrations(bind=engine)

    inspector = inspect(engine)
    habit_columns = {c["name"] for c in inspector.get_columns("habits")}
    assert {"start_day", "days_of_week", "reminder_time"} <= habit_columns
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT date, status FROM habit_logs ORDER BY date")).all()
    assert [r[1] for r in rows] == ["complete", "incomplete"]

    # A second run finds nothing to do.
    run_startup_migrations(bind=engine)


def test_startup_migrations_skip_empty_database():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    run_startup_migrations(bind=engine)
    assert inspect(engine).get_table_names() == []


def test_seed_demo_data_is_idempotent_and_respects_schedules():
    db = _new_db()
    user = seed_demo_data(db, days=14, seed=3, today=MONDAY)
    again = seed_demo_data(db, days=14, seed=3, today=MONDAY)

    assert again.id == user.id
    habits = db.query(Habit).filter(Habit.user_id == user.id).all()
    assert len(habits) == len(DEMO_HABITS)

    by_id = {h.id: h for h in habits}
    logs = db.query(HabitLog).filter(HabitLog.user_id == user.id).all()
    assert logs
    for log in logs:
        assert MONDAY - timedelta(days=13) <= log.date <= MONDAY
        assert is_active_on(by_id[log.habit_id], log.date)
