from __future__ import annotations

import math
from datetime import date
from typing import Any

from services.errors import ValidationError
from services.reconciliation_service import ACTIVITY_TYPES
from utils.datetime_utils import normalize_time_of_day, parse_calendar_date


def require_activity_type(value: Any) -> str:
    norm = str(value or "").strip().lower()
    if norm not in ACTIVITY_TYPES:
        raise ValidationError(f"activity_type must be one of: {', '.join(ACTIVITY_TYPES)}")
    return norm


def require_date(value: Any, field: str = "date") -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"`{field}` is required")
    try:
        return parse_calendar_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"`{field}` must be a YYYY-MM-DD date")


def optional_date(value: Any, fallback: date, field: str = "date") -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        return fallback
    return require_date(value, field)


def require_time_of_day(value: Any, field: str = "time") -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"`{field}` is required")
    try:
        return normalize_time_of_day(value)
    except (TypeError, ValueError):
        raise ValidationError(f"`{field}` must be HH:MM or HH:MM:SS")


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"`{field}` must be a non-empty string")
    return value.strip()


def require_positive(value: Any, field: str, *, maximum: float | None = None) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"`{field}` must be a number")
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"`{field}` must be greater than zero")
    if maximum is not None and number > maximum:
        raise ValidationError(f"`{field}` must be at most {maximum:g}")
    return number


def optional_non_negative(value: Any, field: str) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"`{field}` must be a number")
    if not math.isfinite(number) or number < 0:
        raise ValidationError(f"`{field}` must not be negative")
    return number


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
