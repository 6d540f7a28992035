"""Date and period helper functions."""

from __future__ import annotations

from datetime import date

from dateutil.relativedelta import relativedelta

MONTHS = {
    1: "January",
    2: "February",
    3: "March",
    4: "April",
    5: "May",
    6: "June",
    7: "July",
    8: "August",
    9: "September",
    10: "October",
    11: "November",
    12: "December",
}


def previous_month(year: int, month: int) -> tuple[int, int]:
    """Returns (year, month) of the preceding month; January rolls back a year."""
    prev = date(year, month, 1) - relativedelta(months=1)
    return prev.year, prev.month


def current_period(today: date | None = None) -> tuple[int, int]:
    """Returns (year, month) for today."""
    today = today or date.today()
    return today.year, today.month


def format_period_for_display(year: int, month: int) -> str:
    """Formats a period as 'Month YYYY', e.g. 'March 2024'."""
    return f"{MONTHS[month]} {year}"
