"""Tests for date parser with relative dates."""

import pytest
from datetime import date, timedelta
from cashledger.utils.date_parser import parse_date

TODAY = date(2024, 1, 31)


def test_parse_absolute_date():
    """Test parsing absolute dates."""
    result = parse_date("2024-01-15")
    assert result == date(2024, 1, 15)


def test_parse_written_date():
    assert parse_date("March 3, 2025") == date(2025, 3, 3)


def test_parse_today():
    """Test parsing 'today'."""
    result = parse_date("today")
    assert result == date.today()


def test_parse_tomorrow():
    """Test parsing 'tomorrow'."""
    result = parse_date("tomorrow")
    assert result == date.today() + timedelta(days=1)


def test_parse_next_week():
    assert parse_date("next week", today=TODAY) == date(2024, 2, 7)


def test_parse_next_month_clamps_day():
    """Month arithmetic clamps to the last day of a shorter month."""
    assert parse_date("next month", today=TODAY) == date(2024, 2, 29)


def test_parse_next_year():
    assert parse_date("next year", today=TODAY) == date(2025, 1, 31)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("in 30 days", date(2024, 3, 1)),
        ("in 1 day", date(2024, 2, 1)),
        ("in 2 weeks", date(2024, 2, 14)),
        ("in 3 months", date(2024, 4, 30)),
        ("in 1 year", date(2025, 1, 31)),
    ],
)
def test_parse_in_n_units(text, expected):
    assert parse_date(text, today=TODAY) == expected


def test_parse_case_and_whitespace():
    assert parse_date("  In 10 Days ", today=TODAY) == date(2024, 2, 10)


def test_parse_invalid_date():
    """Test parsing invalid date raises ValueError."""
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date("not a date")
