from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, Text, Float, Boolean, ForeignKey, Index,
    Date, DateTime,
)
from sqlalchemy.orm import relationship
from db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    display_name = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    plans = relationship("DailyPlan", back_populates="user", cascade="all, delete-orphan")


class DailyPlan(Base):
    __tablename__ = "daily_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    planned_date = Column(Date, nullable=False)
    planned_time = Column(Text, nullable=False)  # HH:MM:SS
    activity_type = Column(Text, nullable=False)  # meal | exercise | sleep | water | other
    reference_id = Column(Text)  # meal id or exercise id; null for free-form items
    title = Column(Text, nullable=False)
    description = Column(Text)
    notes = Column(Text)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)
    reopened_at = Column(DateTime)  # last manual reopen; earlier logs no longer count
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="plans")


class MealLog(Base):
    __tablename__ = "meal_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    log_date = Column(Date, nullable=False)
    meal_id = Column(Text)
    meal_name = Column(Text)
    meal_type = Column(Text)  # breakfast | lunch | dinner | snack
    calories = Column(Float)
    servings = Column(Float, nullable=False, default=1.0)
    logged_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def reference_id(self) -> str | None:
        return self.meal_id


class ExerciseLog(Base):
    __tablename__ = "exercise_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    log_date = Column(Date, nullable=False)
    exercise_id = Column(Text)
    title = Column(Text)
    duration_minutes = Column(Float)
    calories_burned = Column(Float)
    logged_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def reference_id(self) -> str | None:
        return self.exercise_id


class SleepLog(Base):
    __tablename__ = "sleep_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    log_date = Column(Date, nullable=False)
    duration_hours = Column(Float)
    quality = Column(Text)
    notes = Column(Text)
    logged_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def reference_id(self) -> None:
        return None


class WaterLog(Base):
    __tablename__ = "water_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    log_date = Column(Date, nullable=False)
    amount_ml = Column(Float, nullable=False)
    logged_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def reference_id(self) -> None:
        return None


# Indexes
Index("idx_users_username", User.username, unique=True)
Index("idx_daily_plans_pending", DailyPlan.user_id, DailyPlan.planned_date, DailyPlan.activity_type, DailyPlan.completed)
Index("idx_daily_plans_user_date_time", DailyPlan.user_id, DailyPlan.planned_date, DailyPlan.planned_time)
Index("idx_meal_log_user_date", MealLog.user_id, MealLog.log_date)
Index("idx_exercise_log_user_date", ExerciseLog.user_id, ExerciseLog.log_date)
Index("idx_sleep_log_user_date", SleepLog.user_id, SleepLog.log_date, SleepLog.created_at)
Index("idx_water_log_user_date", WaterLog.user_id, WaterLog.log_date)
