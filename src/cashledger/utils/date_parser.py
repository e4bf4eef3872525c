"""Date parsing utilities."""

import re
from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_RELATIVE = re.compile(r"^in (\d+) (day|week|month|year)s?$")


def parse_date(date_str: str, today: date | None = None) -> date:
    """Parse a date string into a date object.

    Supports absolute and forward-looking relative dates, as used for loan
    due dates:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "tomorrow", "next week", "next month",
      "in 30 days", "in 2 months", etc.

    Args:
        date_str: Date string in various formats
        today: Reference date for relative dates (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "tomorrow": today + timedelta(days=1),
        "next week": today + timedelta(days=7),
        "next month": today + relativedelta(months=1),
        "next year": today + relativedelta(years=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    match = _RELATIVE.match(date_str)
    if match:
        count, unit = int(match.group(1)), match.group(2)
        return today + relativedelta(**{f"{unit}s": count})

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e
