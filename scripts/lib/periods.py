"""
Period helpers for time-bucketed metrics.

A period is a day, week or month bucket. Period keys are ISO date strings
(``YYYY-MM-DD``) holding the first day of the bucket; weeks start on Monday
to match Postgres ``date_trunc('week', ...)``.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional

PERIOD_TYPES = ("day", "week", "month")

VIEW_SUFFIXES = {
    "day": "daily",
    "week": "weekly",
    "month": "monthly",
}

# Approximate days per period, used to turn a lookback into a date range.
LOOKBACK_DAYS = {
    "day": 1,
    "week": 7,
    "month": 30,
}


def validate_period(period: str) -> str:
    """Return *period* if it is a known period type, else raise ValueError."""
    if period not in PERIOD_TYPES:
        raise ValueError(
            f"Invalid period '{period}'. Must be one of: {', '.join(PERIOD_TYPES)}"
        )
    return period


def interval_unit(period: str) -> str:
    """SQL interval unit for a period type."""
    return validate_period(period)


def view_suffix(period: str) -> str:
    """Suffix of the per-period warehouse views (daily/weekly/monthly)."""
    return VIEW_SUFFIXES[validate_period(period)]


def parse_period_date(value: Any) -> Optional[date]:
    """
    Parse a period key into a date.

    Accepts ``date``/``datetime`` objects and ISO strings, with or without a
    time component. Returns None for anything unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def period_key(value: Any) -> Optional[str]:
    """Canonical ISO key for a period date, or None when unparseable."""
    parsed = parse_period_date(value)
    return parsed.isoformat() if parsed else None


def truncate_period(value: Any, period: str) -> Optional[date]:
    """
    Start of the period containing *value*: the day itself, the Monday of its
    week, or the first of its month. Returns None for unparseable dates.
    """
    validate_period(period)
    parsed = parse_period_date(value)
    if parsed is None:
        return None
    if period == "week":
        return parsed - timedelta(days=parsed.weekday())
    if period == "month":
        return parsed.replace(day=1)
    return parsed


def format_period_date(value: Any, period: str) -> str:
    """
    Display label for a period date.

    Used when the warehouse view does not ship a pre-formatted label:
    ``Mar 4`` for days, ``Week of Mar 4`` for weeks, ``March 2025`` for months.
    """
    parsed = parse_period_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    validate_period(period)
    short = f"{parsed.strftime('%b')} {parsed.day}"
    if period == "day":
        return short
    if period == "week":
        return f"Week of {short}"
    return parsed.strftime("%B %Y")


def lookback_range(period: str, lookback_units: int, today: date = None) -> tuple[str, str]:
    """
    (start, end) ISO dates covering *lookback_units* periods back from today.

    Months are approximated as 30 days.
    """
    validate_period(period)
    today = today or date.today()
    start = today - timedelta(days=lookback_units * LOOKBACK_DAYS[period])
    return start.isoformat(), today.isoformat()
