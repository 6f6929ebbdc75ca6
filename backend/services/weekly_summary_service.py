"""Seven-day rollups for the dashboard.

Durations are summed and averaged as ``Decimal`` built from the stored value's
string form; rounding happens once, on the average, when the summary is built.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy.orm import Session

from config import settings
from db.repositories import Repositories, sql_repositories
from services.errors import AggregationInputError, ValidationError
from services.serializers import half_up_int
from utils.datetime_utils import Clock, window_dates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DurationMetric:
    activity_type: str
    field: str
    unit: str


SLEEP_HOURS = DurationMetric(activity_type="sleep", field="duration_hours", unit="hours")
EXERCISE_MINUTES = DurationMetric(activity_type="exercise", field="duration_minutes", unit="minutes")
DURATION_METRICS = {m.activity_type: m for m in (SLEEP_HOURS, EXERCISE_MINUTES)}


@dataclass(frozen=True)
class DayDuration:
    day: date
    duration: Decimal | None
    entries: int = 0


@dataclass(frozen=True)
class WeeklySummary:
    activity_type: str
    unit: str
    start: date
    end: date
    days: tuple[DayDuration, ...]
    days_with_data: int
    total_duration: Decimal
    avg_duration: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity_type": self.activity_type,
            "unit": self.unit,
            "start_date": self.start.isoformat(),
            "end_date": self.end.isoformat(),
            "days": [
                {
                    "date": d.day.isoformat(),
                    "duration": float(d.duration) if d.duration is not None else None,
                    "entries": d.entries,
                }
                for d in self.days
            ],
            "summary": {
                "days_with_data": self.days_with_data,
                "total_duration": float(self.total_duration),
                "avg_duration": float(self.avg_duration),
            },
        }


def duration_of(log: Any, metric: DurationMetric) -> Decimal:
    raw = getattr(log, metric.field, None)
    if raw is None:
        raise AggregationInputError(f"{metric.activity_type} log has no duration", log_id=getattr(log, "id", None))
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise AggregationInputError(
            f"{metric.activity_type} log has a non-numeric duration: {raw!r}", log_id=getattr(log, "id", None)
        )
    if not value.is_finite() or value <= 0:
        raise AggregationInputError(
            f"{metric.activity_type} log has an invalid duration: {raw!r}", log_id=getattr(log, "id", None)
        )
    return value


def average(total: Decimal, count: int, precision: int) -> Decimal:
    if count <= 0:
        return Decimal(0)
    step = Decimal(1).scaleb(-max(0, int(precision)))
    return (total / Decimal(count)).quantize(step, rounding=ROUND_HALF_UP)


def summarize_durations(
    logs: Iterable[Any],
    metric: DurationMetric,
    *,
    end_day: date,
    window_days: int | None = None,
    precision: int | None = None,
) -> WeeklySummary:
    """Bucket ``logs`` into the window ending on ``end_day``.

    Logs outside the window are ignored. A log with a corrupt duration is
    skipped and reported; the rest of the week is still summarised.
    """
    dates = window_dates(end_day, window_days or settings.WEEKLY_WINDOW_DAYS)
    in_window = set(dates)
    buckets: dict[date, list[Decimal]] = defaultdict(list)
    for log in logs:
        if log.log_date not in in_window:
            continue
        try:
            buckets[log.log_date].append(duration_of(log, metric))
        except AggregationInputError as exc:
            logger.warning("Skipping %s log %s in weekly summary: %s", metric.activity_type, exc.log_id, exc)

    days: list[DayDuration] = []
    total = Decimal(0)
    with_data = 0
    for d in dates:
        values = buckets.get(d)
        if not values:
            days.append(DayDuration(day=d, duration=None))
            continue
        day_total = sum(values, Decimal(0))
        days.append(DayDuration(day=d, duration=day_total, entries=len(values)))
        total += day_total
        with_data += 1

    return WeeklySummary(
        activity_type=metric.activity_type,
        unit=metric.unit,
        start=dates[0],
        end=dates[-1],
        days=tuple(days),
        days_with_data=with_data,
        total_duration=total,
        avg_duration=average(total, with_data, settings.AVG_DURATION_PRECISION if precision is None else precision),
    )


def get_weekly_summary(
    db: Session,
    user_id: int,
    end_date: date | None = None,
    *,
    activity_type: str = "sleep",
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> WeeklySummary:
    metric = DURATION_METRICS.get(activity_type)
    if metric is None:
        raise ValidationError(f"No duration summary for activity type: {activity_type}")
    end_day = end_date or (clock or Clock()).today()
    repos = repos or sql_repositories(db)
    dates = window_dates(end_day, settings.WEEKLY_WINDOW_DAYS)
    logs = repos.logs_for(metric.activity_type).get_range(user_id, dates[0], dates[-1])
    return summarize_durations(logs, metric, end_day=end_day)


def get_weekly_activity(
    db: Session,
    user_id: int,
    end_date: date | None = None,
    *,
    clock: Clock | None = None,
    repos: Repositories | None = None,
) -> dict[str, Any]:
    """Per-day meal calories and water cups for the chart on the dashboard."""
    end_day = end_date or (clock or Clock()).today()
    repos = repos or sql_repositories(db)
    dates = window_dates(end_day, settings.WEEKLY_WINDOW_DAYS)
    meals = repos.meals.get_range(user_id, dates[0], dates[-1])
    water = repos.water.get_range(user_id, dates[0], dates[-1])

    calories: dict[date, Decimal] = defaultdict(Decimal)
    for m in meals:
        if m.calories is not None:
            calories[m.log_date] += Decimal(str(m.calories))
    water_ml: dict[date, Decimal] = defaultdict(Decimal)
    for w in water:
        if w.amount_ml is not None:
            water_ml[w.log_date] += Decimal(str(w.amount_ml))

    cup = Decimal(settings.WATER_CUP_ML)
    return {
        "start_date": dates[0].isoformat(),
        "end_date": dates[-1].isoformat(),
        "weekly_data": [
            {
                "date": d.isoformat(),
                "calories": float(calories[d]),
                "water_ml": float(water_ml[d]),
                "water_cups": half_up_int(water_ml[d] / cup) if cup > 0 else 0,
            }
            for d in dates
        ],
    }
