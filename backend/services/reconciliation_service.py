"""Match freshly logged activity against the user's pending plan items.

A plan item moves from pending to completed at most once. Completion is a
conditional update (``completed = false`` in the WHERE clause), so replaying a
log, or two requests racing on the same item, flips the row exactly once and
keeps the first ``completed_at``. Only an explicit user reopen sets it back to
pending, and logs from before the reopen no longer count for it.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from db.models import DailyPlan
from db.repositories import PlanRepository, Repositories
from services.errors import ReconciliationFailure, ValidationError
from utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = ("meal", "exercise", "sleep", "water", "other")
# Plans for these types name a catalog resource and only match a log for the same resource.
REFERENCED_TYPES = frozenset({"meal", "exercise"})
# Plans for these types match any log of the type on the same date.
REFERENCE_LESS_TYPES = frozenset({"sleep", "water"})


@dataclass(frozen=True)
class CompletionResult:
    user_id: int
    log_date: date
    activity_type: str
    matched_ids: tuple[int, ...] = ()
    completed_count: int = 0

    @property
    def completed(self) -> bool:
        return self.completed_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity_type": self.activity_type,
            "date": self.log_date.isoformat(),
            "matched_ids": list(self.matched_ids),
            "completed_count": self.completed_count,
        }


def _norm_ref(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def plan_matches_log(plan: DailyPlan, activity_type: str, reference_id: Any) -> bool:
    if activity_type in REFERENCE_LESS_TYPES:
        return True
    if activity_type not in REFERENCED_TYPES:
        return False
    plan_ref = _norm_ref(plan.reference_id)
    log_ref = _norm_ref(reference_id)
    if plan_ref is None or log_ref is None:
        return False
    return plan_ref.lower() == log_ref.lower()


def on_activity_logged(
    plans: PlanRepository,
    *,
    user_id: int,
    log_date: date,
    activity_type: str,
    reference_id: Any,
    logged_at: datetime,
) -> CompletionResult:
    """Complete every pending plan item the given log satisfies.

    The caller owns the transaction and must have committed the log before
    calling. Storage errors are raised as ``ReconciliationFailure``.
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"Unknown activity type: {activity_type}")

    try:
        pending = plans.find_pending(user_id, log_date, activity_type)
        matched_ids = tuple(
            int(p.id) for p in pending if plan_matches_log(p, activity_type, reference_id)
        )
        completed_count = plans.mark_completed(user_id, matched_ids, logged_at) if matched_ids else 0
    except SQLAlchemyError as exc:
        raise ReconciliationFailure(
            f"Plan completion failed for {activity_type} on {log_date.isoformat()}: {exc}",
            user_id=user_id,
            log_date=log_date,
            activity_type=activity_type,
        ) from exc

    if completed_count:
        logger.info(
            "Auto-completed %s %s plan item(s) for user %s on %s",
            completed_count,
            activity_type,
            user_id,
            log_date.isoformat(),
        )
    return CompletionResult(
        user_id=user_id,
        log_date=log_date,
        activity_type=activity_type,
        matched_ids=matched_ids,
        completed_count=completed_count,
    )


def _reconcilable_logs(repos: Repositories, activity_type: str, user_id: int, day: date) -> list[Any]:
    repo = repos.logs_for(activity_type)
    if repo is None:
        return []
    return sorted(repo.get_by_date(user_id, day), key=lambda log: (as_utc(log.logged_at), log.id or 0))


def log_counts_for_replay(plan: DailyPlan, logged_at: datetime) -> bool:
    """A replayed log only counts for a plan that already existed when it was
    logged, and never for one the user reopened afterwards."""
    at = as_utc(logged_at)
    if plan.created_at is not None and at < as_utc(plan.created_at):
        return False
    if plan.reopened_at is not None and at <= as_utc(plan.reopened_at):
        return False
    return True


def _first_satisfying_log(plan: DailyPlan, activity_type: str, logs: list[Any]) -> datetime | None:
    for log in logs:
        if log_counts_for_replay(plan, log.logged_at) and plan_matches_log(plan, activity_type, log.reference_id):
            return log.logged_at
    return None


def reconcile_day(repos: Repositories, *, user_id: int, day: date) -> list[CompletionResult]:
    """Recover completions lost to an earlier ``ReconciliationFailure``.

    Pending plans are read once per activity type and matched against all of
    the day's logs. Each recovered plan gets the earliest satisfying
    ``logged_at``.
    """
    results: list[CompletionResult] = []
    for activity_type in sorted(REFERENCED_TYPES | REFERENCE_LESS_TYPES):
        try:
            pending = repos.plans.find_pending(user_id, day, activity_type)
            if not pending:
                continue
            logs = _reconcilable_logs(repos, activity_type, user_id, day)
            if not logs:
                continue

            by_time: dict[datetime, list[int]] = defaultdict(list)
            for plan in pending:
                satisfied_at = _first_satisfying_log(plan, activity_type, logs)
                if satisfied_at is not None:
                    by_time[satisfied_at].append(int(plan.id))
            completed_count = sum(
                repos.plans.mark_completed(user_id, ids, at) for at, ids in by_time.items()
            )
        except SQLAlchemyError as exc:
            raise ReconciliationFailure(
                f"Replay failed for {activity_type} on {day.isoformat()}: {exc}",
                user_id=user_id,
                log_date=day,
                activity_type=activity_type,
            ) from exc

        if completed_count:
            logger.info(
                "Recovered %s %s plan completion(s) for user %s on %s",
                completed_count,
                activity_type,
                user_id,
                day.isoformat(),
            )
            results.append(
                CompletionResult(
                    user_id=user_id,
                    log_date=day,
                    activity_type=activity_type,
                    matched_ids=tuple(sorted(i for ids in by_time.values() for i in ids)),
                    completed_count=completed_count,
                )
            )
    return results
