"""
time_utils.py — Period keys, period boundaries, and source date parsing.

Aggregation periods:
- WEEKLY:  ISO-8601 week, keyed by (ISO week-year, week number), Monday–Sunday
- MONTHLY: calendar month, first to last day
- ANNUAL:  calendar year

Usage:
    from agriprice_shared.time_utils import iso_week_key, iso_week_bounds, month_bounds

    iso_week_key(date(2024, 12, 31))       # (2025, 1)
    iso_week_bounds(2025, 1)               # (date(2024, 12, 30), date(2025, 1, 5))
    month_bounds(2024, 2)                  # (date(2024, 2, 1), date(2024, 2, 29))
    parse_period_date(2023, 7)             # date(2023, 7, 1)
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta


def iso_week_key(d: date) -> tuple[int, int]:
    """
    Return the (ISO week-year, ISO week number) of a date.

    Dec 31 can belong to week 1 of the next year, and Jan 1 to week 52/53
    of the previous one; the week-year, not the calendar year, is returned.
    """
    iso = d.isocalendar()
    return iso[0], iso[1]


def iso_week_bounds(week_year: int, week: int) -> tuple[date, date]:
    """Monday and Sunday of an ISO week."""
    monday = date.fromisocalendar(week_year, week, 1)
    return monday, monday + timedelta(days=6)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    first = date(year, month, 1)
    return first, first + relativedelta(months=1, days=-1)


def parse_period_date(year: int, period: int | None = None) -> date:
    """
    Date a period-level source row.

    Monthly rows (period 1–12) date to the first of the month; annual rows
    (period None) to January 1st.
    """
    if period is None:
        return date(year, 1, 1)
    if not 1 <= period <= 12:
        raise ValueError(f"Month period out of range: {period}")
    return date(year, period, 1)


def coerce_date(raw: date | datetime | str) -> date:
    """Accept a date, a datetime, or an ISO string ("2024-01-02", "2024-01-02T00:00:00Z")."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = raw.strip()
    if len(s) > 10:
        s = s[:10]
    return date.fromisoformat(s)
