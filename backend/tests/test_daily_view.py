from __future__ import annotations

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import DailyPlan, MealLog, SleepLog, User, WaterLog  # noqa: E402
from db.repositories import sql_repositories  # noqa: E402
from services.activity_service import log_meal  # noqa: E402
from services.daily_view_service import (  # noqa: E402
    build_daily_view,
    get_daily_view,
    get_sleep_entries,
    get_water_total,
)
from services.planning_service import create_plan, get_plan_status, set_plan_status  # noqa: E402
from utils.datetime_utils import FixedClock  # noqa: E402


DAY = date(2024, 3, 1)
AT = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str = "daily_tester") -> User:
    user = User(username=username, display_name="Daily Tester")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_empty_day_has_empty_lists_and_no_sleep():
    db = _new_db()
    user = _new_user(db)

    view = build_daily_view(sql_repositories(db), user_id=user.id, day=DAY)

    assert view["date"] == "2024-03-01"
    assert view["meals"] == []
    assert view["exercises"] == []
    assert view["water"] == []
    assert view["sleep"] is None
    assert view["plans"] == []
    assert view["water_total"] == {"total_ml": 0.0, "total_cups": 0}
    assert view["plan_summary"] == {"total": 0, "completed": 0, "pending": 0, "completion_percentage": 0}


def test_most_recently_created_sleep_entry_wins():
    db = _new_db()
    user = _new_user(db)
    older = SleepLog(user_id=user.id, log_date=DAY, duration_hours=6, logged_at=AT, created_at=AT)
    newer = SleepLog(
        user_id=user.id, log_date=DAY, duration_hours=8, logged_at=AT, created_at=AT + timedelta(hours=2)
    )
    db.add_all([newer, older])
    db.commit()

    view = build_daily_view(sql_repositories(db), user_id=user.id, day=DAY)
    entries = get_sleep_entries(db, user.id, DAY)

    assert view["sleep"]["duration_hours"] == 8
    assert [e["duration_hours"] for e in entries] == [8, 6]


def test_view_only_includes_requested_day():
    db = _new_db()
    user = _new_user(db)
    db.add_all(
        [
            MealLog(user_id=user.id, log_date=DAY, meal_id="M1", calories=400, servings=1.0, logged_at=AT),
            MealLog(user_id=user.id, log_date=DAY + timedelta(days=1), meal_id="M2", servings=1.0, logged_at=AT),
            WaterLog(user_id=user.id, log_date=DAY, amount_ml=500, logged_at=AT),
            WaterLog(user_id=user.id, log_date=DAY, amount_ml=250, logged_at=AT),
        ]
    )
    db.commit()

    view = build_daily_view(sql_repositories(db), user_id=user.id, day=DAY)

    assert [m["meal_id"] for m in view["meals"]] == ["M1"]
    assert view["water_total"] == {"total_ml": 750.0, "total_cups": 3}
    assert get_water_total(db, user.id, DAY) == {"date": "2024-03-01", "total_ml": 750.0, "total_cups": 3}


def test_plan_summary_counts_and_rounds_percentage():
    db = _new_db()
    user = _new_user(db)
    for idx, done in enumerate([True, False, False]):
        db.add(
            DailyPlan(
                user_id=user.id,
                planned_date=DAY,
                planned_time=f"0{idx + 7}:00:00",
                activity_type="other",
                title=f"Task {idx}",
                completed=done,
            )
        )
    db.commit()

    view = build_daily_view(sql_repositories(db), user_id=user.id, day=DAY)

    assert view["plan_summary"] == {"total": 3, "completed": 1, "pending": 2, "completion_percentage": 33}
    assert [p["time"] for p in view["plans"]] == ["07:00:00", "08:00:00", "09:00:00"]


def test_read_recovers_missed_completion_only_when_enabled():
    db = _new_db()
    user = _new_user(db)
    plan = DailyPlan(
        user_id=user.id,
        planned_date=DAY,
        planned_time="08:00:00",
        activity_type="meal",
        reference_id="M1",
        title="Breakfast",
        completed=False,
        created_at=AT - timedelta(hours=3),
    )
    db.add(plan)
    db.add(MealLog(user_id=user.id, log_date=DAY, meal_id="M1", servings=1.0, logged_at=AT))
    db.commit()

    untouched = get_daily_view(db, user.id, DAY, reconcile=False)
    assert untouched["plans"][0]["completed"] is False

    view = get_daily_view(db, user.id, DAY, reconcile=True)
    assert view["plans"][0]["completed"] is True
    assert view["plan_summary"]["completion_percentage"] == 100


def test_read_does_not_undo_a_manual_reopen():
    db = _new_db()
    user = _new_user(db)
    plan = create_plan(
        db,
        user.id,
        planned_date=DAY,
        planned_time="08:00",
        activity_type="meal",
        title="Breakfast",
        reference_id="M1",
        clock=FixedClock(AT - timedelta(hours=2)),
    )
    db.commit()
    log_meal(db, user.id, meal_id="M1", log_date=DAY, clock=FixedClock(AT))
    assert get_plan_status(db, user.id, plan.id)["status"] == "completed"

    set_plan_status(db, user.id, plan.id, completed=False, clock=FixedClock(AT + timedelta(hours=1)))
    db.commit()
    view = get_daily_view(db, user.id, DAY, reconcile=True)

    assert get_plan_status(db, user.id, plan.id)["status"] == "pending"
    assert view["plan_summary"]["pending"] == 1


def test_read_does_not_complete_plan_created_after_the_log():
    db = _new_db()
    user = _new_user(db)
    log_meal(db, user.id, meal_id="M1", log_date=DAY, clock=FixedClock(AT))
    plan = create_plan(
        db,
        user.id,
        planned_date=DAY,
        planned_time="19:00",
        activity_type="meal",
        title="Dinner",
        reference_id="M1",
        clock=FixedClock(AT + timedelta(hours=4)),
    )
    db.commit()

    view = get_daily_view(db, user.id, DAY, reconcile=True)

    assert get_plan_status(db, user.id, plan.id)["status"] == "pending"
    assert view["plans"][0]["completed"] is False

    log_meal(db, user.id, meal_id="M1", log_date=DAY, clock=FixedClock(AT + timedelta(hours=5)))
    assert get_plan_status(db, user.id, plan.id)["status"] == "completed"
