from datetime import datetime, date, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _zone(tz_name: str | None) -> ZoneInfo | timezone:
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except ZoneInfoNotFoundError:
            pass
    return timezone.utc


def today_for_tz(tz_name: str | None) -> date:
    """Return today's date in the given timezone, falling back to UTC."""
    return datetime.now(_zone(tz_name)).date()


class Clock:
    """Single source of "now" for request handling.

    All calendar comparisons use the one configured zone; nothing is inferred
    from the client.
    """

    def __init__(self, tz_name: str | None = None):
        self.tz_name = tz_name or settings.APP_TIMEZONE

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().astimezone(_zone(self.tz_name)).date()


class FixedClock(Clock):
    """Clock pinned to one instant."""

    def __init__(self, instant: datetime, tz_name: str | None = None):
        super().__init__(tz_name)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant


def get_clock() -> Clock:
    return Clock()


def window_dates(end_day: date, days: int) -> list[date]:
    """Return the ``days`` calendar dates ending on ``end_day``, ascending."""
    span = max(1, int(days))
    start = end_day - timedelta(days=span - 1)
    return [start + timedelta(days=i) for i in range(span)]


def parse_calendar_date(raw: str | date) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw).strip())


def normalize_time_of_day(raw: str | time) -> str:
    """Normalize ``HH:MM`` or ``HH:MM:SS`` to ``HH:MM:SS``."""
    if isinstance(raw, time):
        return raw.strftime("%H:%M:%S")
    return time.fromisoformat(str(raw).strip()).strftime("%H:%M:%S")


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
