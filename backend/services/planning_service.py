from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from config import settings
from db.models import DailyPlan
from db.repositories import Repositories, sql_repositories
from services import activity_service
from services.errors import NotFoundError, ValidationError
from services.serializers import plan_summary, plan_to_dict
from services.validation import (
    optional_text,
    require_activity_type,
    require_date,
    require_text,
    require_time_of_day,
)
from utils.datetime_utils import Clock, window_dates


def _get_plan_or_raise(repos: Repositories, user_id: int, plan_id: int) -> DailyPlan:
    row = repos.plans.get(user_id, plan_id)
    if not row:
        raise NotFoundError("Plan not found")
    return row


def create_plan(
    db: Session,
    user_id: int,
    *,
    planned_date: date | str,
    planned_time: str,
    activity_type: str,
    title: str,
    description: str | None = None,
    notes: str | None = None,
    reference_id: str | None = None,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> DailyPlan:
    day = require_date(planned_date)
    at = require_time_of_day(planned_time)
    kind = require_activity_type(activity_type)
    name = require_text(title, "title")
    repos = repos or sql_repositories(db)
    now = (clock or Clock()).now()
    row = DailyPlan(
        user_id=user_id,
        planned_date=day,
        planned_time=at,
        activity_type=kind,
        reference_id=optional_text(reference_id),
        title=name,
        description=optional_text(description),
        notes=optional_text(notes),
        completed=False,
        created_at=now,
        updated_at=now,
    )
    repos.plans.create(row)
    return row


def get_plans_by_date(db: Session, user_id: int, day: date, *, repos: Repositories | None = None) -> dict[str, Any]:
    repos = repos or sql_repositories(db)
    plans = repos.plans.get_by_date(user_id, day)
    return {"date": day.isoformat(), "plans": [plan_to_dict(p) for p in plans], "summary": plan_summary(plans)}


def get_plan_status(db: Session, user_id: int, plan_id: int, *, repos: Repositories | None = None) -> dict[str, Any]:
    """Raises ``NotFoundError`` for a missing plan; otherwise pending or completed."""
    row = _get_plan_or_raise(repos or sql_repositories(db), user_id, plan_id)
    return {
        "id": row.id,
        "status": "completed" if row.completed else "pending",
        "completed": bool(row.completed),
        "completed_at": row.completed_at.isoformat() if row.completed_at else None,
    }


def set_plan_status(
    db: Session,
    user_id: int,
    plan_id: int,
    *,
    completed: bool,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> DailyPlan:
    """Explicit user toggle; the only path that can reopen a completed plan."""
    row = _get_plan_or_raise(repos or sql_repositories(db), user_id, plan_id)
    if completed:
        if not row.completed:
            row.completed = True
            row.completed_at = (clock or Clock()).now()
    elif row.completed:
        row.completed = False
        row.completed_at = None
        row.reopened_at = (clock or Clock()).now()
    db.flush()
    return row


def update_plan(
    db: Session,
    user_id: int,
    plan_id: int,
    *,
    planned_time: str | None = None,
    title: str | None = None,
    description: str | None = None,
    notes: str | None = None,
    repos: Repositories | None = None,
) -> DailyPlan:
    new_time = require_time_of_day(planned_time) if planned_time is not None else None
    new_title = require_text(title, "title") if title is not None else None
    row = _get_plan_or_raise(repos or sql_repositories(db), user_id, plan_id)
    if new_time is not None:
        row.planned_time = new_time
    if new_title is not None:
        row.title = new_title
    if description is not None:
        row.description = optional_text(description)
    if notes is not None:
        row.notes = optional_text(notes)
    db.flush()
    return row


def delete_plan(db: Session, user_id: int, plan_id: int, *, repos: Repositories | None = None) -> None:
    repos = repos or sql_repositories(db)
    if not repos.plans.delete(user_id, plan_id):
        raise NotFoundError("Plan not found")


def execute_plan(
    db: Session,
    user_id: int,
    plan_id: int,
    *,
    duration_minutes: float | None = None,
    duration_hours: float | None = None,
    calories: float | None = None,
    calories_burned: float | None = None,
    amount_ml: float | None = None,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> dict[str, Any]:
    """Log the activity a plan describes, then make sure the plan itself is done.

    The log goes through the normal logging path, so other pending plans it
    satisfies complete as well.
    """
    clock = clock or Clock()
    repos = repos or sql_repositories(db)
    row = _get_plan_or_raise(repos, user_id, plan_id)
    if row.completed:
        raise ValidationError("Plan is already completed")

    kind = row.activity_type
    day = row.planned_date
    if kind == "exercise" and duration_minutes is None:
        raise ValidationError("`duration_minutes` is required to execute an exercise plan")
    if kind == "sleep" and duration_hours is None:
        raise ValidationError("`duration_hours` is required to execute a sleep plan")

    result = None
    if kind == "meal":
        result = activity_service.log_meal(
            db, user_id, meal_id=row.reference_id, meal_name=row.title,
            calories=calories, log_date=day, clock=clock, repos=repos,
        )
    elif kind == "exercise":
        result = activity_service.log_exercise(
            db, user_id, exercise_id=row.reference_id, title=row.title, duration_minutes=duration_minutes,
            calories_burned=calories_burned, log_date=day, clock=clock, repos=repos,
        )
    elif kind == "sleep":
        result = activity_service.log_sleep(
            db, user_id, sleep_date=day, duration_hours=duration_hours, notes=row.title, clock=clock, repos=repos,
        )
    elif kind == "water":
        result = activity_service.log_water(
            db, user_id, amount_ml=amount_ml if amount_ml is not None else settings.WATER_CUP_ML,
            log_date=day, clock=clock, repos=repos,
        )

    # Free-form plans (and meal/exercise plans without a reference) are not
    # matched by the engine; executing one is an explicit user completion.
    db.refresh(row)
    if not row.completed:
        completed_at = result.log.logged_at if result is not None else clock.now()
        repos.plans.mark_completed(user_id, [row.id], completed_at)
    db.commit()
    db.refresh(row)

    payload: dict[str, Any] = {
        "plan": plan_to_dict(row),
        "activity_logged": result is not None,
        "log": None,
        "reconciliation": None,
    }
    if result is not None:
        payload.update({k: v for k, v in result.to_dict().items() if k in {"log", "reconciliation", "warning"}})
    return payload


def get_weekly_plan_summary(
    db: Session,
    user_id: int,
    end_date: date | None = None,
    *,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> dict[str, Any]:
    """Plan totals per (date, activity type) for the window ending on ``end_date``."""
    end_day = end_date or (clock or Clock()).today()
    repos = repos or sql_repositories(db)
    dates = window_dates(end_day, settings.WEEKLY_WINDOW_DAYS)
    rows = repos.plans.get_range(user_id, dates[0], dates[-1])

    grouped: dict[tuple[date, str], dict[str, int]] = {}
    for p in rows:
        bucket = grouped.setdefault((p.planned_date, p.activity_type), {"total_plans": 0, "completed_plans": 0})
        bucket["total_plans"] += 1
        if p.completed:
            bucket["completed_plans"] += 1

    return {
        "start_date": dates[0].isoformat(),
        "end_date": dates[-1].isoformat(),
        "weekly_summary": [
            {"date": d.isoformat(), "activity_type": kind, **counts}
            for (d, kind), counts in sorted(grouped.items())
        ],
    }
