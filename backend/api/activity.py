from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.activity_service import log_exercise, log_meal, log_sleep, log_water
from services.daily_view_service import get_daily_view, get_sleep_entries, get_water_total
from services.validation import optional_date, require_date
from services.weekly_summary_service import get_weekly_activity, get_weekly_summary
from utils.datetime_utils import Clock, get_clock

router = APIRouter(prefix="/activity", tags=["activity"])


# --- Pydantic Schemas ---

class MealLogCreate(BaseModel):
    meal_id: Optional[str] = None
    name: Optional[str] = None
    meal_type: Optional[str] = None  # breakfast | lunch | dinner | snack
    calories: Optional[float] = None
    servings: Optional[float] = 1.0
    log_date: Optional[str] = None


class ExerciseLogCreate(BaseModel):
    exercise_id: Optional[str] = None
    title: Optional[str] = None
    duration_minutes: float
    calories_burned: Optional[float] = None
    log_date: Optional[str] = None


class SleepLogCreate(BaseModel):
    sleep_date: str
    duration_hours: float
    quality: Optional[str] = None
    notes: Optional[str] = None


class WaterLogCreate(BaseModel):
    amount_ml: float
    log_date: Optional[str] = None


# --- Reads ---

@router.get("/today")
def today_activity(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return get_daily_view(db, user.id, clock.today())


@router.get("/day/{target_date}")
def day_activity(
    target_date: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        day = require_date(target_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return get_daily_view(db, user.id, day)


@router.get("/weekly")
def weekly_activity(
    end_date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        end_day = optional_date(end_date, clock.today(), "end_date")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return get_weekly_activity(db, user.id, end_day)


@router.get("/water/today")
def today_water(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return get_water_total(db, user.id, clock.today())


@router.get("/sleep/today")
def today_sleep(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return get_sleep_entries(db, user.id, clock.today())


def _weekly_duration(db: Session, user: User, clock: Clock, end_date: Optional[str], activity_type: str) -> dict:
    try:
        end_day = optional_date(end_date, clock.today(), "end_date")
        summary = get_weekly_summary(db, user.id, end_day, activity_type=activity_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return summary.to_dict()


@router.get("/sleep/weekly")
def weekly_sleep(
    end_date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return _weekly_duration(db, user, clock, end_date, "sleep")


@router.get("/exercise/weekly")
def weekly_exercise(
    end_date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return _weekly_duration(db, user, clock, end_date, "exercise")


# --- Writes ---

@router.post("/log-meal")
def create_meal_log(
    payload: MealLogCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        result = log_meal(
            db,
            user.id,
            meal_id=payload.meal_id,
            meal_name=payload.name,
            meal_type=payload.meal_type,
            calories=payload.calories,
            servings=payload.servings,
            log_date=payload.log_date,
            clock=clock,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"message": "Meal logged successfully", **result.to_dict()}


@router.post("/log-exercise")
def create_exercise_log(
    payload: ExerciseLogCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        result = log_exercise(
            db,
            user.id,
            exercise_id=payload.exercise_id,
            title=payload.title,
            duration_minutes=payload.duration_minutes,
            calories_burned=payload.calories_burned,
            log_date=payload.log_date,
            clock=clock,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"message": "Exercise logged successfully", **result.to_dict()}


@router.post("/log-sleep", status_code=201)
def create_sleep_log(
    payload: SleepLogCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        result = log_sleep(
            db,
            user.id,
            sleep_date=payload.sleep_date,
            duration_hours=payload.duration_hours,
            quality=payload.quality,
            notes=payload.notes,
            clock=clock,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"message": "Sleep logged successfully", **result.to_dict()}


@router.post("/log-water")
def create_water_log(
    payload: WaterLogCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        result = log_water(db, user.id, amount_ml=payload.amount_ml, log_date=payload.log_date, clock=clock)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"message": "Water intake logged successfully", **result.to_dict()}
