"""
Timezone-aware datetime helpers.
- Store and compute instants in UTC in the DB.
- "Today" is the half-open local day [midnight, next midnight) in settings.APP_TIMEZONE.
"""
from datetime import datetime, date, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from hrtrack.core.config import settings

UTC = timezone.utc


@lru_cache(maxsize=None)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_tz() -> ZoneInfo:
    """The single business timezone."""
    return _zone(settings.APP_TIMEZONE)


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Only the HTTP layer reads the clock."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to the business timezone. Naive datetimes are treated as UTC before converting."""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(local_tz())


def get_work_date(now: datetime) -> date:
    """Local calendar date that `now` falls on."""
    return to_local(now).date()


def get_day_window(now: datetime) -> Tuple[datetime, datetime]:
    """
    Return [start_of_day, start_of_next_day) around `now` in local wall-clock terms.

    Both bounds are timezone-aware. The end is computed from the next calendar date rather
    than start + 24h so DST transitions still land on midnight.
    """
    day = get_work_date(now)
    tz = local_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def is_within_day(instant: datetime, now: datetime) -> bool:
    """Whether `instant` belongs to the same local day as `now`."""
    start, end = get_day_window(now)
    return start <= ensure_utc(instant) < end


def round_minutes(delta: timedelta) -> int:
    """Whole minutes in `delta`, rounding halves away from zero."""
    minutes = Decimal(str(delta.total_seconds())) / Decimal(60)
    return int(minutes.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minutes_between(start: datetime, end: datetime) -> int:
    """Rounded minutes from `start` to `end`; naive values are read as UTC (SQLite drops tzinfo)."""
    return round_minutes(ensure_utc(end) - ensure_utc(start))


def format_minutes(minutes: Optional[int]) -> str:
    """Render minutes as 'Xh Ym', or 'Ym' below an hour."""
    minutes = minutes or 0
    if minutes < 0:
        return "-" + format_minutes(-minutes)
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if hours > 0 else f"{rest}m"


def iso_local(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 in the business timezone. Use for API response datetime fields."""
    if dt is None:
        return None
    return to_local(dt).isoformat()
