from __future__ import annotations

import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import ExerciseLog, MealLog, SleepLog, User, WaterLog  # noqa: E402
from services.errors import AggregationInputError, ValidationError  # noqa: E402
from services.weekly_summary_service import (  # noqa: E402
    EXERCISE_MINUTES,
    SLEEP_HOURS,
    average,
    duration_of,
    get_weekly_activity,
    get_weekly_summary,
    summarize_durations,
)
from utils.datetime_utils import FixedClock  # noqa: E402


END = date(2024, 1, 7)
AT = datetime(2024, 1, 7, 9, 0, tzinfo=timezone.utc)


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str = "weekly_tester") -> User:
    user = User(username=username, display_name="Weekly Tester")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _sleep(day: date, hours, log_id: int = 1):
    return SimpleNamespace(id=log_id, log_date=day, duration_hours=hours)


def test_window_covers_seven_days_in_ascending_order():
    summary = summarize_durations([], SLEEP_HOURS, end_day=END, window_days=7)

    assert [d.day for d in summary.days] == [date(2024, 1, 1) + timedelta(days=i) for i in range(7)]
    assert summary.start == date(2024, 1, 1)
    assert summary.end == END


def test_three_nights_of_sleep_average_to_one_decimal():
    logs = [
        _sleep(date(2024, 1, 2), 8, 1),
        _sleep(date(2024, 1, 4), 6.5, 2),
        _sleep(date(2024, 1, 6), 7, 3),
    ]

    summary = summarize_durations(logs, SLEEP_HOURS, end_day=END, window_days=7, precision=1)

    assert summary.days_with_data == 3
    assert summary.total_duration == Decimal("21.5")
    assert summary.avg_duration == Decimal("7.2")
    assert [d.duration is None for d in summary.days].count(True) == 4
    payload = summary.to_dict()
    assert payload["summary"] == {"days_with_data": 3, "total_duration": 21.5, "avg_duration": 7.2}
    assert payload["days"][0] == {"date": "2024-01-01", "duration": None, "entries": 0}


def test_empty_week_averages_to_zero():
    summary = summarize_durations([], SLEEP_HOURS, end_day=END, window_days=7, precision=1)

    assert summary.days_with_data == 0
    assert summary.total_duration == Decimal(0)
    assert summary.avg_duration == Decimal(0)


def test_corrupt_durations_are_skipped_not_fatal():
    logs = [
        _sleep(date(2024, 1, 1), None, 1),
        _sleep(date(2024, 1, 2), float("nan"), 2),
        _sleep(date(2024, 1, 3), 0, 3),
        _sleep(date(2024, 1, 4), -2, 4),
        _sleep(date(2024, 1, 5), "abc", 5),
        _sleep(date(2024, 1, 6), 8, 6),
    ]

    summary = summarize_durations(logs, SLEEP_HOURS, end_day=END, window_days=7, precision=1)

    assert summary.days_with_data == 1
    assert summary.total_duration == Decimal("8")
    assert summary.avg_duration == Decimal("8.0")


def test_duration_of_reports_offending_log():
    with pytest.raises(AggregationInputError) as excinfo:
        duration_of(_sleep(END, None, 42), SLEEP_HOURS)
    assert excinfo.value.log_id == 42


def test_same_day_logs_are_summed_and_logs_outside_window_ignored():
    logs = [
        _sleep(date(2024, 1, 3), 6, 1),
        _sleep(date(2024, 1, 3), 1.5, 2),
        _sleep(date(2023, 12, 31), 9, 3),
        _sleep(date(2024, 1, 8), 9, 4),
    ]

    summary = summarize_durations(logs, SLEEP_HOURS, end_day=END, window_days=7, precision=1)
    day = next(d for d in summary.days if d.day == date(2024, 1, 3))

    assert day.duration == Decimal("7.5")
    assert day.entries == 2
    assert summary.days_with_data == 1
    assert summary.total_duration == Decimal("7.5")


def test_average_rounds_half_up():
    assert average(Decimal("0.25"), 1, 1) == Decimal("0.3")
    assert average(Decimal("20"), 3, 0) == Decimal("7")
    assert average(Decimal("10"), 0, 1) == Decimal(0)


def test_weekly_sleep_summary_reads_user_logs_only():
    db = _new_db()
    user = _new_user(db)
    other = _new_user(db, "someone_else")
    db.add_all(
        [
            SleepLog(user_id=user.id, log_date=date(2024, 1, 2), duration_hours=8, logged_at=AT),
            SleepLog(user_id=user.id, log_date=date(2024, 1, 4), duration_hours=6.5, logged_at=AT),
            SleepLog(user_id=user.id, log_date=date(2024, 1, 6), duration_hours=7, logged_at=AT),
            SleepLog(user_id=other.id, log_date=date(2024, 1, 6), duration_hours=3, logged_at=AT),
        ]
    )
    db.commit()

    summary = get_weekly_summary(db, user.id, END)

    assert summary.activity_type == "sleep"
    assert summary.unit == "hours"
    assert summary.days_with_data == 3
    assert float(summary.avg_duration) == 7.2


def test_weekly_summary_defaults_end_date_to_clock_today():
    db = _new_db()
    user = _new_user(db)
    db.add(ExerciseLog(user_id=user.id, log_date=END, duration_minutes=45, logged_at=AT))
    db.add(ExerciseLog(user_id=user.id, log_date=END, duration_minutes=15, logged_at=AT))
    db.commit()

    summary = get_weekly_summary(db, user.id, activity_type="exercise", clock=FixedClock(AT))

    assert summary.end == END
    assert summary.unit == EXERCISE_MINUTES.unit
    assert summary.total_duration == Decimal("60")
    assert summary.days[-1].entries == 2


def test_weekly_summary_rejects_metric_without_duration():
    db = _new_db()
    user = _new_user(db)
    with pytest.raises(ValidationError):
        get_weekly_summary(db, user.id, END, activity_type="water")


def test_weekly_activity_totals_calories_and_water():
    db = _new_db()
    user = _new_user(db)
    db.add_all(
        [
            MealLog(user_id=user.id, log_date=date(2024, 1, 5), calories=450, servings=1.0, logged_at=AT),
            MealLog(user_id=user.id, log_date=date(2024, 1, 5), calories=320.5, servings=1.0, logged_at=AT),
            MealLog(user_id=user.id, log_date=date(2024, 1, 5), calories=None, servings=1.0, logged_at=AT),
            WaterLog(user_id=user.id, log_date=date(2024, 1, 5), amount_ml=500, logged_at=AT),
            WaterLog(user_id=user.id, log_date=date(2024, 1, 5), amount_ml=125, logged_at=AT),
        ]
    )
    db.commit()

    result = get_weekly_activity(db, user.id, END)
    by_date = {row["date"]: row for row in result["weekly_data"]}

    assert len(result["weekly_data"]) == 7
    assert by_date["2024-01-05"]["calories"] == 770.5
    assert by_date["2024-01-05"]["water_ml"] == 625.0
    assert by_date["2024-01-05"]["water_cups"] == 3
    assert by_date["2024-01-01"] == {"date": "2024-01-01", "calories": 0.0, "water_ml": 0.0, "water_cups": 0}
