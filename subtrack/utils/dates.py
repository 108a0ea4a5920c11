# subtrack/utils/dates.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

DateLike = Union[date, datetime, str, None]


def to_date(value: DateLike = None) -> date:
    """
    Normalise to a calendar date (time-of-day discarded).
    None means today; strings are ISO dates or datetimes.
    """
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")).date()


def ymd(d: Optional[date]) -> Optional[str]:
    return d.strftime("%Y-%m-%d") if d else None


def parse_ymd(s) -> Optional[date]:
    try:
        return datetime.strptime(str(s), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None
