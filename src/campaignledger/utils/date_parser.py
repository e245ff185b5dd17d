"""Date parsing and date range preset utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

PERIODS = (
    "last-7-days",
    "last-30-days",
    "last-3-months",
    "last-6-months",
    "last-12-months",
    "this-week",
    "this-month",
    "this-quarter",
    "this-year",
    "last-week",
    "last-month",
    "last-year",
)


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024") and relative
    ones: "today", "yesterday", "tomorrow", and "last/this/next" followed by
    "week", "month" or "year" (the first day of that period).

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if text in relative_dates:
        return relative_dates[text]

    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)
    year_start = today.replace(month=1, day=1)
    anchored = {
        "last week": week_start - timedelta(days=7),
        "this week": week_start,
        "next week": week_start + timedelta(days=7),
        "last month": month_start - relativedelta(months=1),
        "this month": month_start,
        "next month": month_start + relativedelta(months=1),
        "last year": year_start - relativedelta(years=1),
        "this year": year_start,
        "next year": year_start + relativedelta(years=1),
    }
    if text in anchored:
        return anchored[text]

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get inclusive start and end dates for a named period.

    Rolling periods ("last-30-days") end today; calendar periods
    ("this-quarter", "last-month") cover the whole period.

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "last-7-days":
        return today - timedelta(days=7), today
    if period == "last-30-days":
        return today - timedelta(days=30), today
    if period == "last-3-months":
        return today - relativedelta(months=3), today
    if period == "last-6-months":
        return today - relativedelta(months=6), today
    if period == "last-12-months":
        return today - relativedelta(years=1), today

    if period == "this-week":
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    if period == "this-month":
        start = today.replace(day=1)
        return start, start + relativedelta(months=1) - timedelta(days=1)
    if period == "this-quarter":
        start = today.replace(month=(today.month - 1) // 3 * 3 + 1, day=1)
        return start, start + relativedelta(months=3) - timedelta(days=1)
    if period == "this-year":
        return today.replace(month=1, day=1), today.replace(month=12, day=31)

    if period == "last-week":
        start = today - timedelta(days=today.weekday() + 7)
        return start, start + timedelta(days=6)
    if period == "last-month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if period == "last-year":
        year = today.year - 1
        return date(year, 1, 1), date(year, 12, 31)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")
