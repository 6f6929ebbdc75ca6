from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from db.models import DailyPlan, ExerciseLog, MealLog, SleepLog, WaterLog


MEAL_FIELDS = ("log_date", "meal_id", "meal_name", "meal_type", "calories", "servings", "logged_at")
EXERCISE_FIELDS = ("log_date", "exercise_id", "title", "duration_minutes", "calories_burned", "logged_at")
SLEEP_FIELDS = ("log_date", "duration_hours", "quality", "notes", "logged_at", "created_at")
WATER_FIELDS = ("log_date", "amount_ml", "logged_at")

_FIELDS_BY_MODEL: dict[type, tuple[str, ...]] = {
    MealLog: MEAL_FIELDS,
    ExerciseLog: EXERCISE_FIELDS,
    SleepLog: SLEEP_FIELDS,
    WaterLog: WATER_FIELDS,
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize_log(log, fields: tuple[str, ...] | None = None) -> dict[str, Any]:
    result = {"id": log.id}
    for f in fields or _FIELDS_BY_MODEL[type(log)]:
        result[f] = _jsonable(getattr(log, f, None))
    return result


def plan_to_dict(plan: DailyPlan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "date": plan.planned_date.isoformat() if plan.planned_date else None,
        "time": plan.planned_time,
        "activity_type": plan.activity_type,
        "reference_id": plan.reference_id,
        "title": plan.title,
        "description": plan.description,
        "notes": plan.notes,
        "completed": bool(plan.completed),
        "completed_at": plan.completed_at.isoformat() if plan.completed_at else None,
        "reopened_at": plan.reopened_at.isoformat() if plan.reopened_at else None,
        "created_at": plan.created_at.isoformat() if plan.created_at else None,
    }


def plan_summary(plans: list[DailyPlan]) -> dict[str, int]:
    total = len(plans)
    completed = sum(1 for p in plans if p.completed)
    return {
        "total": total,
        "completed": completed,
        "pending": total - completed,
        "completion_percentage": half_up_int(Decimal(completed * 100) / Decimal(total)) if total > 0 else 0,
    }


def half_up_int(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
