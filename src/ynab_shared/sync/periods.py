"""Calendar periods a sync pass can be scoped to."""

import calendar
import re
from datetime import date
from typing import NamedTuple

from ..models import LedgerSnapshot, Transaction

_MONTH_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Period(NamedTuple):
    """Inclusive date range, usually one calendar month."""

    start: date
    end: date

    @property
    def label(self) -> str:
        return self.start.isoformat()

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def month_period(month: str | date, today: date | None = None) -> Period:
    """
    Period covering the calendar month of ``month``.

    Args:
        month: A date, or a string in the format yyyy-MM-dd
        today: Reference date for the "not in the future" check

    Raises:
        ValueError: If the string is malformed or the month lies in the future
    """
    today = today or date.today()

    if isinstance(month, str):
        if not _MONTH_FORMAT.match(month):
            raise ValueError("The month must be in the format yyyy-MM-dd")
        month = date.fromisoformat(month)

    start = month.replace(day=1)
    if start > today:
        raise ValueError(f"The month {start.isoformat()} must be in the past")

    last_day = calendar.monthrange(start.year, start.month)[1]
    return Period(start=start, end=start.replace(day=last_day))


def year_periods(year: int, today: date | None = None) -> list[Period]:
    """Monthly periods of ``year``, up to the current month."""
    today = today or date.today()
    return [
        month_period(date(year, month, 1), today)
        for month in range(1, 13)
        if date(year, month, 1) <= today
    ]


def budget_periods(snapshot: LedgerSnapshot, today: date | None = None) -> list[Period]:
    """Monthly periods of every past or current month of a budget, oldest first."""
    today = today or date.today()
    months = sorted({m.month.replace(day=1) for m in snapshot.months})
    return [month_period(m, today) for m in months if m <= today]


def filter_period(transactions: list[Transaction], period: Period) -> list[Transaction]:
    """Transactions dated within ``period``."""
    return [t for t in transactions if period.contains(t.date)]
