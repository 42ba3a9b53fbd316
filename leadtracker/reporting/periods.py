"""
Reporting windows. All datetimes are naive UTC; windows are inclusive (SQL BETWEEN).

Dashboard (period = N days):
  current  = [today - (N-1) days 00:00:00, today 23:59:59]
  previous = the N days ending one second before current.start

Monthly report:
  regular  = last calendar month, compared with the month before it
  test     = last 30 days up to now, compared with the same span one month earlier
"""

import calendar
import datetime
from decimal import ROUND_HALF_UP, Decimal
from dataclasses import dataclass

ALLOWED_PERIODS = (1, 7, 30, 90)
DEFAULT_PERIOD = 30
TEST_REPORT_LABEL = "Test Report (Last 30 Days)"

ONE_SECOND = datetime.timedelta(seconds=1)


@dataclass(frozen=True)
class Window:
    start: datetime.datetime
    end: datetime.datetime


@dataclass(frozen=True)
class ReportPeriod:
    current: Window
    previous: Window
    label: str


def day_start(dt: datetime.datetime) -> datetime.datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def day_end(dt: datetime.datetime) -> datetime.datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=0)


def shift_months(dt: datetime.datetime, months: int) -> datetime.datetime:
    """Move by whole months, clamping the day to the target month's length."""
    index = dt.month - 1 + months
    year = dt.year + index // 12
    month = index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def coerce_period(value) -> int:
    """Unknown or malformed period → default."""
    try:
        period = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PERIOD
    return period if period in ALLOWED_PERIODS else DEFAULT_PERIOD


def dashboard_windows(period: int, now: datetime.datetime) -> tuple[Window, Window]:
    current = Window(
        start=day_start(now - datetime.timedelta(days=period - 1)),
        end=day_end(now),
    )
    prev_end = current.start - ONE_SECOND
    previous = Window(
        start=day_start(prev_end - datetime.timedelta(days=period - 1)),
        end=prev_end,
    )
    return current, previous


def monthly_report_period(now: datetime.datetime, is_test: bool = False) -> ReportPeriod:
    if is_test:
        current = Window(start=day_start(now - datetime.timedelta(days=29)), end=now.replace(microsecond=0))
        previous = Window(start=shift_months(current.start, -1), end=shift_months(current.end, -1))
        return ReportPeriod(current=current, previous=previous, label=TEST_REPORT_LABEL)

    first_of_month = day_start(now).replace(day=1)
    start = shift_months(first_of_month, -1)
    current = Window(start=start, end=first_of_month - ONE_SECOND)
    previous = Window(start=shift_months(start, -1), end=start - ONE_SECOND)
    return ReportPeriod(current=current, previous=previous, label=start.strftime("%B %Y"))


def percent_change(current: int, previous: int) -> float:
    """Growth from zero counts as +100%."""
    if previous > 0:
        return (current - previous) / previous * 100
    if current > 0:
        return 100.0
    return 0.0


def round_half_up(value: float) -> int:
    """Halves round away from zero: 12.5 → 13, -12.5 → -13."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def trend_months(end: datetime.datetime, count: int = 12) -> list[tuple[int, int]]:
    """(year, month) pairs, oldest first, ending with end's month."""
    months = []
    anchor = end.replace(day=1)
    for i in range(count):
        d = shift_months(anchor, -i)
        months.append((d.year, d.month))
    return list(reversed(months))
