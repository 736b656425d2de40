from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Date, ForeignKey, Index, UniqueConstraint,
    DateTime,
)
from sqlalchemy.orm import relationship
from db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    username_normalized = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=False)
    timezone = Column(Text, nullable=True)  # IANA name; falls back to DEFAULT_TIMEZONE
    token_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    habits = relationship("Habit", back_populates="user", cascade="all, delete-orphan")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, unique=True, nullable=False)
    color = Column(Text, nullable=False, default="#6366f1")  # hex, display only

    habits = relationship("Habit", back_populates="category")


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text)
    frequency = Column(Text, nullable=False, default="daily")  # daily | weekly | custom
    start_day = Column(Integer, nullable=True)  # 0=Monday, weekly only
    days_of_week = Column(Text, nullable=True)  # JSON array of 0-6, custom only
    reminder_time = Column(Text, nullable=True)  # none | anytime | morning | afternoon | evening
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="habits")
    category = relationship("Category", back_populates="habits")
    logs = relationship("HabitLog", back_populates="habit", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_habits_user", "user_id"),
    )


class HabitLog(Base):
    __tablename__ = "habit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    habit_id = Column(Integer, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="incomplete")  # incomplete | partial | complete | not_applicable
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    habit = relationship("Habit", back_populates="logs")

    __table_args__ = (
        UniqueConstraint("habit_id", "user_id", "date", name="uq_habit_logs_habit_user_date"),
        Index("ix_habit_logs_user_date", "user_id", "date"),
    )
