from __future__ import annotations

from datetime import date, datetime
from typing import Any, Generic, Protocol, Sequence, TypeVar

from sqlalchemy.orm import Session

from db.models import DailyPlan, ExerciseLog, MealLog, SleepLog, WaterLog


LogT = TypeVar("LogT", MealLog, ExerciseLog, SleepLog, WaterLog)


class PlanRepository(Protocol):
    def find_pending(self, user_id: int, day: date, activity_type: str) -> list[DailyPlan]: ...

    def mark_completed(self, user_id: int, ids: Sequence[int], completed_at: datetime) -> int: ...

    def create(self, plan: DailyPlan) -> int: ...

    def get(self, user_id: int, plan_id: int) -> DailyPlan | None: ...

    def get_by_date(self, user_id: int, day: date) -> list[DailyPlan]: ...

    def get_range(self, user_id: int, start: date, end: date) -> list[DailyPlan]: ...

    def delete(self, user_id: int, plan_id: int) -> int: ...


class ActivityLogRepository(Protocol[LogT]):
    def create(self, log: LogT) -> int: ...

    def get_by_date(self, user_id: int, day: date) -> list[LogT]: ...

    def get_range(self, user_id: int, start: date, end: date) -> list[LogT]: ...


class SqlPlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_pending(self, user_id: int, day: date, activity_type: str) -> list[DailyPlan]:
        return (
            self.db.query(DailyPlan)
            .filter(
                DailyPlan.user_id == user_id,
                DailyPlan.planned_date == day,
                DailyPlan.activity_type == activity_type,
                DailyPlan.completed.is_(False),
            )
            .order_by(DailyPlan.planned_time, DailyPlan.id)
            .all()
        )

    def mark_completed(self, user_id: int, ids: Sequence[int], completed_at: datetime) -> int:
        """Flip still-pending rows in ``ids`` to completed; returns rows changed.

        The ``completed`` guard lives in the UPDATE itself so a row already
        completed by a concurrent request is left untouched.
        """
        id_list = [int(i) for i in ids]
        if not id_list:
            return 0
        updated = (
            self.db.query(DailyPlan)
            .filter(
                DailyPlan.user_id == user_id,
                DailyPlan.id.in_(id_list),
                DailyPlan.completed.is_(False),
            )
            .update(
                {DailyPlan.completed: True, DailyPlan.completed_at: completed_at},
                synchronize_session="fetch",
            )
        )
        return int(updated or 0)

    def create(self, plan: DailyPlan) -> int:
        self.db.add(plan)
        self.db.flush()
        return int(plan.id)

    def get(self, user_id: int, plan_id: int) -> DailyPlan | None:
        return (
            self.db.query(DailyPlan)
            .filter(DailyPlan.user_id == user_id, DailyPlan.id == plan_id)
            .first()
        )

    def get_by_date(self, user_id: int, day: date) -> list[DailyPlan]:
        return (
            self.db.query(DailyPlan)
            .filter(DailyPlan.user_id == user_id, DailyPlan.planned_date == day)
            .order_by(DailyPlan.planned_time, DailyPlan.id)
            .all()
        )

    def get_range(self, user_id: int, start: date, end: date) -> list[DailyPlan]:
        return (
            self.db.query(DailyPlan)
            .filter(
                DailyPlan.user_id == user_id,
                DailyPlan.planned_date >= start,
                DailyPlan.planned_date <= end,
            )
            .order_by(DailyPlan.planned_date, DailyPlan.planned_time, DailyPlan.id)
            .all()
        )

    def delete(self, user_id: int, plan_id: int) -> int:
        deleted = (
            self.db.query(DailyPlan)
            .filter(DailyPlan.user_id == user_id, DailyPlan.id == plan_id)
            .delete(synchronize_session=False)
        )
        return int(deleted or 0)


class SqlActivityLogRepository(Generic[LogT]):
    """Log storage for one log model; every model keys its day on ``log_date``."""

    def __init__(self, db: Session, model: type[LogT]):
        self.db = db
        self.model = model

    def create(self, log: LogT) -> int:
        self.db.add(log)
        self.db.flush()
        return int(log.id)

    def get(self, user_id: int, log_id: int) -> LogT | None:
        return (
            self.db.query(self.model)
            .filter(self.model.user_id == user_id, self.model.id == log_id)
            .first()
        )

    def get_by_date(self, user_id: int, day: date) -> list[LogT]:
        return (
            self.db.query(self.model)
            .filter(self.model.user_id == user_id, self.model.log_date == day)
            .order_by(self.model.logged_at, self.model.id)
            .all()
        )

    def get_range(self, user_id: int, start: date, end: date) -> list[LogT]:
        return (
            self.db.query(self.model)
            .filter(
                self.model.user_id == user_id,
                self.model.log_date >= start,
                self.model.log_date <= end,
            )
            .order_by(self.model.log_date, self.model.logged_at, self.model.id)
            .all()
        )


class Repositories:
    """The set of ports one request works against."""

    def __init__(
        self,
        plans: PlanRepository,
        meals: ActivityLogRepository[Any],
        exercises: ActivityLogRepository[Any],
        sleep: ActivityLogRepository[Any],
        water: ActivityLogRepository[Any],
    ):
        self.plans = plans
        self.meals = meals
        self.exercises = exercises
        self.sleep = sleep
        self.water = water

    def logs_for(self, activity_type: str) -> ActivityLogRepository[Any] | None:
        return {
            "meal": self.meals,
            "exercise": self.exercises,
            "sleep": self.sleep,
            "water": self.water,
        }.get(activity_type)


def sql_repositories(db: Session) -> Repositories:
    return Repositories(
        plans=SqlPlanRepository(db),
        meals=SqlActivityLogRepository(db, MealLog),
        exercises=SqlActivityLogRepository(db, ExerciseLog),
        sleep=SqlActivityLogRepository(db, SleepLog),
        water=SqlActivityLogRepository(db, WaterLog),
    )
