import logging

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import settings

logger = logging.getLogger(__name__)

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=False,
)


if _is_sqlite:
    # Enable WAL mode for better concurrent read performance
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_startup_migrations(bind=None) -> None:
    """Apply lightweight schema fixes for databases created before recurrence rules and statuses."""
    bind = bind or engine
    inspector = inspect(bind)

    def _table_columns(table_name: str) -> set[str]:
        try:
            return {col["name"] for col in inspector.get_columns(table_name)}
        except Exception:
            return set()

    habit_columns = _table_columns("habits")
    log_columns = _table_columns("habit_logs")
    if not habit_columns and not log_columns:
        # Tables may not exist yet on first boot.
        return

    alter_statements: list[str] = []
    if habit_columns:
        if "start_day" not in habit_columns:
            alter_statements.append("ALTER TABLE habits ADD COLUMN start_day INTEGER")
        if "days_of_week" not in habit_columns:
            alter_statements.append("ALTER TABLE habits ADD COLUMN days_of_week TEXT")
        if "reminder_time" not in habit_columns:
            alter_statements.append("ALTER TABLE habits ADD COLUMN reminder_time TEXT")

    backfill_status = bool(log_columns) and "status" not in log_columns
    if backfill_status:
        alter_statements.append("ALTER TABLE habit_logs ADD COLUMN status TEXT DEFAULT 'incomplete'")

    with bind.begin() as conn:
        for stmt in alter_statements:
            logger.info("Startup migration: %s", stmt)
            conn.execute(text(stmt))

        if backfill_status and "completed" in log_columns:
            conn.execute(
                text(
                    "UPDATE habit_logs SET status = CASE WHEN completed THEN 'complete' ELSE 'incomplete' END"
                )
            )
