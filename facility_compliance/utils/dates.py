# facility_compliance/utils/dates.py
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from dateutil.relativedelta import relativedelta


# ---- Calendar arithmetic -----------------------------------------------------
# Results saturate at date.min / date.max instead of raising, so far-future
# inputs still produce a (clamped) due date.
def _shift(d: date, delta: Union[relativedelta, timedelta], forward: bool) -> date:
    try:
        return d + delta
    except (OverflowError, ValueError):
        return date.max if forward else date.min


def add_months(d: date, n: int) -> date:
    """
    Calendar-aware month addition. The day of month clamps to the last valid
    day of the resulting month (Jan 31 + 1 month -> Feb 28/29).
    """
    return _shift(d, relativedelta(months=n), n >= 0)


def add_years(d: date, n: int) -> date:
    """Calendar-aware year addition (Feb 29 + 1 year -> Feb 28)."""
    return _shift(d, relativedelta(years=n), n >= 0)


def add_days(d: date, n: int) -> date:
    return _shift(d, timedelta(days=n), n >= 0)


def days_between(a: date, b: date) -> int:
    """Signed day count b - a."""
    return (b - a).days


# ---- Clock helpers (only used at the outer edges: API defaults, scheduler) -----
def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return utcnow().date()


def parse_date(s: Optional[str]) -> Optional[date]:
    """Accepts 'YYYY-MM-DD' or a full ISO datetime; returns None for blanks."""
    if not s:
        return None
    return date.fromisoformat(str(s)[:10])
