from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from db.models import SleepLog, WaterLog
from db.repositories import Repositories, sql_repositories
from services.errors import ReconciliationFailure
from services.reconciliation_service import reconcile_day
from services.serializers import half_up_int, plan_summary, plan_to_dict, serialize_log

logger = logging.getLogger(__name__)


def _latest_sleep(rows: list[SleepLog]) -> SleepLog | None:
    if not rows:
        return None
    return max(rows, key=lambda r: (r.created_at or datetime.min, r.id or 0))


def water_totals(rows: Iterable[WaterLog]) -> dict[str, Any]:
    total_ml = sum((Decimal(str(r.amount_ml)) for r in rows if r.amount_ml is not None), Decimal(0))
    cups = half_up_int(total_ml / Decimal(settings.WATER_CUP_ML)) if settings.WATER_CUP_ML > 0 else 0
    return {"total_ml": float(total_ml), "total_cups": cups}


def build_daily_view(repos: Repositories, *, user_id: int, day: date) -> dict[str, Any]:
    """Collect one day's logs and plan state. Reads only."""
    meals = repos.meals.get_by_date(user_id, day)
    exercises = repos.exercises.get_by_date(user_id, day)
    water = repos.water.get_by_date(user_id, day)
    sleep = _latest_sleep(repos.sleep.get_by_date(user_id, day))
    plans = repos.plans.get_by_date(user_id, day)

    return {
        "date": day.isoformat(),
        "meals": [serialize_log(m) for m in meals],
        "exercises": [serialize_log(e) for e in exercises],
        "water": [serialize_log(w) for w in water],
        "water_total": water_totals(water),
        "sleep": serialize_log(sleep) if sleep else None,
        "plans": [plan_to_dict(p) for p in plans],
        "plan_summary": plan_summary(plans),
    }


def get_daily_view(
    db: Session,
    user_id: int,
    day: date,
    *,
    reconcile: bool | None = None,
    repos: Repositories | None = None,
) -> dict[str, Any]:
    repos = repos or sql_repositories(db)
    should_reconcile = settings.LAZY_RECONCILE_ON_READ if reconcile is None else reconcile
    if should_reconcile:
        try:
            reconcile_day(repos, user_id=user_id, day=day)
            db.commit()
        except (ReconciliationFailure, SQLAlchemyError) as exc:
            db.rollback()
            logger.warning("Lazy plan reconciliation failed for user %s on %s: %s", user_id, day, exc)
    return build_daily_view(repos, user_id=user_id, day=day)


def get_sleep_entries(db: Session, user_id: int, day: date, *, repos: Repositories | None = None) -> list[dict[str, Any]]:
    """All sleep logs of ``day``, newest first."""
    repos = repos or sql_repositories(db)
    rows = repos.sleep.get_by_date(user_id, day)
    rows = sorted(rows, key=lambda r: (r.created_at or datetime.min, r.id or 0), reverse=True)
    return [serialize_log(r) for r in rows]


def get_water_total(db: Session, user_id: int, day: date, *, repos: Repositories | None = None) -> dict[str, Any]:
    repos = repos or sql_repositories(db)
    return {"date": day.isoformat(), **water_totals(repos.water.get_by_date(user_id, day))}
