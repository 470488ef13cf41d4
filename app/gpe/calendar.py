"""Calendar helpers — day/week bucketing and ISO day keys."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

DAY = timedelta(days=1)

_CADENCE_DAYS = {"daily": 1, "weekly": 7, "monthly": 30}


def cadence_to_days(cadence: str | None) -> int:
    """Length of a cadence period in days; 0 for "none" or unknown."""
    if cadence is None:
        return 0
    return _CADENCE_DAYS.get(str(getattr(cadence, "value", cadence)), 0)


def local_date(ts: datetime, tz: tzinfo = timezone.utc) -> date:
    return ts.astimezone(tz).date()


def start_of_day(ts: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Midnight of `ts`'s calendar day in `tz`, as an aware datetime."""
    return datetime.combine(local_date(ts, tz), time.min, tzinfo=tz)


def start_of_week(ts: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Monday midnight of the ISO week containing `ts` in `tz`."""
    day = local_date(ts, tz)
    monday = day - timedelta(days=day.weekday())
    return datetime.combine(monday, time.min, tzinfo=tz)


def iso_date_key(ts: datetime, tz: tzinfo = timezone.utc) -> str:
    return local_date(ts, tz).isoformat()
