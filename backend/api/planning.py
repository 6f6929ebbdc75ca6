from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.errors import NotFoundError
from services.planning_service import (
    create_plan,
    delete_plan,
    execute_plan,
    get_plan_status,
    get_plans_by_date,
    get_weekly_plan_summary,
    set_plan_status,
    update_plan,
)
from services.serializers import plan_to_dict
from services.validation import optional_date, require_date
from utils.datetime_utils import Clock, get_clock

router = APIRouter(prefix="/planning", tags=["planning"])


class PlanCreate(BaseModel):
    date: str
    time: str
    activity_type: str  # meal | exercise | sleep | water | other
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    reference_id: Optional[str] = None
    meal_id: Optional[str] = None
    exercise_id: Optional[str] = None


class PlanUpdate(BaseModel):
    time: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None


class PlanStatusUpdate(BaseModel):
    completed: bool


class PlanExecute(BaseModel):
    duration_minutes: Optional[float] = None
    duration_hours: Optional[float] = None
    calories: Optional[float] = None
    calories_burned: Optional[float] = None
    amount_ml: Optional[float] = None


def _reference_for(payload: PlanCreate) -> Optional[str]:
    if payload.reference_id:
        return payload.reference_id
    kind = (payload.activity_type or "").strip().lower()
    if kind == "meal":
        return payload.meal_id
    if kind == "exercise":
        return payload.exercise_id
    return None


@router.get("/today")
def today_plans(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return get_plans_by_date(db, user.id, clock.today())


@router.get("/weekly-summary")
def weekly_plan_summary(
    end_date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        end_day = optional_date(end_date, clock.today(), "end_date")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return get_weekly_plan_summary(db, user.id, end_day)


@router.get("/date/{target_date}")
def plans_for_date(
    target_date: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        day = require_date(target_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return get_plans_by_date(db, user.id, day)


@router.post("", status_code=201)
def create_daily_plan(
    payload: PlanCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        row = create_plan(
            db,
            user.id,
            planned_date=payload.date,
            planned_time=payload.time,
            activity_type=payload.activity_type,
            title=payload.title,
            description=payload.description,
            notes=payload.notes,
            reference_id=_reference_for(payload),
            clock=clock,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    db.refresh(row)
    return {"message": "Plan created successfully", "plan": plan_to_dict(row)}


@router.get("/{plan_id}/status")
def plan_status(
    plan_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return get_plan_status(db, user.id, plan_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.patch("/{plan_id}/status")
def update_plan_status(
    plan_id: int,
    payload: PlanStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        row = set_plan_status(db, user.id, plan_id, completed=payload.completed, clock=clock)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    db.commit()
    db.refresh(row)
    return {"message": "Plan status updated", "plan": plan_to_dict(row)}


@router.post("/{plan_id}/execute")
def execute_daily_plan(
    plan_id: int,
    payload: Optional[PlanExecute] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    body = payload or PlanExecute()
    try:
        result = execute_plan(
            db,
            user.id,
            plan_id,
            duration_minutes=body.duration_minutes,
            duration_hours=body.duration_hours,
            calories=body.calories,
            calories_burned=body.calories_burned,
            amount_ml=body.amount_ml,
            clock=clock,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"message": "Plan executed successfully", **result}


@router.put("/{plan_id}")
def update_daily_plan(
    plan_id: int,
    payload: PlanUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        row = update_plan(
            db,
            user.id,
            plan_id,
            planned_time=payload.time,
            title=payload.title,
            description=payload.description,
            notes=payload.notes,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    db.refresh(row)
    return {"message": "Plan updated successfully", "plan": plan_to_dict(row)}


@router.delete("/{plan_id}")
def delete_daily_plan(
    plan_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        delete_plan(db, user.id, plan_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    db.commit()
    return {"message": "Plan deleted successfully"}
