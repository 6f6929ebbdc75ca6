from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from db.models import ExerciseLog, MealLog, SleepLog, WaterLog
from db.repositories import Repositories, sql_repositories
from services.errors import ReconciliationFailure
from services.reconciliation_service import CompletionResult, on_activity_logged
from services.serializers import serialize_log
from services.validation import (
    optional_date,
    optional_non_negative,
    optional_text,
    require_date,
    require_positive,
)
from utils.datetime_utils import Clock

logger = logging.getLogger(__name__)

STALE_PLAN_WARNING = "activity logged; plan status may be stale"


@dataclass
class LogResult:
    activity_type: str
    log: Any
    completion: CompletionResult | None = None
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "activity_type": self.activity_type,
            "log": serialize_log(self.log),
            "reconciliation": self.completion.to_dict() if self.completion else None,
        }
        if self.warning:
            payload["warning"] = self.warning
        return payload


def _record_and_reconcile(
    db: Session,
    repos: Repositories,
    *,
    user_id: int,
    activity_type: str,
    log: Any,
) -> LogResult:
    repo = repos.logs_for(activity_type)
    repo.create(log)
    # The log must be durable before matching so a failed completion never takes it down.
    db.commit()
    db.refresh(log)
    log_id = log.id

    try:
        completion = on_activity_logged(
            repos.plans,
            user_id=user_id,
            log_date=log.log_date,
            activity_type=activity_type,
            reference_id=log.reference_id,
            logged_at=log.logged_at,
        )
        try:
            db.commit()
        except SQLAlchemyError as exc:
            raise ReconciliationFailure(
                f"Plan completion commit failed: {exc}",
                user_id=user_id,
                log_date=log.log_date,
                activity_type=activity_type,
            ) from exc
    except ReconciliationFailure as exc:
        db.rollback()
        logger.warning(
            "Logged %s %s for user %s but plan reconciliation failed: %s",
            activity_type,
            log_id,
            user_id,
            exc,
        )
        return LogResult(activity_type=activity_type, log=log, warning=STALE_PLAN_WARNING)

    return LogResult(activity_type=activity_type, log=log, completion=completion)


def log_meal(
    db: Session,
    user_id: int,
    *,
    meal_id: str | None = None,
    meal_name: str | None = None,
    meal_type: str | None = None,
    calories: float | None = None,
    servings: float | None = 1.0,
    log_date: date | str | None = None,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> LogResult:
    clock = clock or Clock()
    day = optional_date(log_date, clock.today())
    portions = require_positive(servings if servings is not None else 1.0, "servings")
    kcal = optional_non_negative(calories, "calories")
    log = MealLog(
        user_id=user_id,
        log_date=day,
        meal_id=optional_text(meal_id),
        meal_name=optional_text(meal_name),
        meal_type=optional_text(meal_type),
        calories=kcal,
        servings=portions,
        logged_at=clock.now(),
    )
    return _record_and_reconcile(db, repos or sql_repositories(db), user_id=user_id, activity_type="meal", log=log)


def log_exercise(
    db: Session,
    user_id: int,
    *,
    duration_minutes: float,
    exercise_id: str | None = None,
    title: str | None = None,
    calories_burned: float | None = None,
    log_date: date | str | None = None,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> LogResult:
    clock = clock or Clock()
    day = optional_date(log_date, clock.today())
    minutes = require_positive(duration_minutes, "duration_minutes")
    burned = optional_non_negative(calories_burned, "calories_burned")
    log = ExerciseLog(
        user_id=user_id,
        log_date=day,
        exercise_id=optional_text(exercise_id),
        title=optional_text(title),
        duration_minutes=minutes,
        calories_burned=burned,
        logged_at=clock.now(),
    )
    return _record_and_reconcile(db, repos or sql_repositories(db), user_id=user_id, activity_type="exercise", log=log)


def log_sleep(
    db: Session,
    user_id: int,
    *,
    sleep_date: date | str,
    duration_hours: float,
    quality: str | None = None,
    notes: str | None = None,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> LogResult:
    clock = clock or Clock()
    day = require_date(sleep_date, "sleep_date")
    hours = require_positive(duration_hours, "duration_hours", maximum=settings.MAX_SLEEP_HOURS)
    log = SleepLog(
        user_id=user_id,
        log_date=day,
        duration_hours=hours,
        quality=optional_text(quality),
        notes=optional_text(notes),
        logged_at=clock.now(),
    )
    return _record_and_reconcile(db, repos or sql_repositories(db), user_id=user_id, activity_type="sleep", log=log)


def log_water(
    db: Session,
    user_id: int,
    *,
    amount_ml: float,
    log_date: date | str | None = None,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> LogResult:
    clock = clock or Clock()
    day = optional_date(log_date, clock.today())
    amount = require_positive(amount_ml, "amount_ml")
    log = WaterLog(user_id=user_id, log_date=day, amount_ml=amount, logged_at=clock.now())
    return _record_and_reconcile(db, repos or sql_repositories(db), user_id=user_id, activity_type="water", log=log)
