"""
Day arithmetic shared by every aggregate.

days_until() is the only place a day difference is computed: trip
countdowns, trip durations and maintenance thresholds all go through it.
"""
import calendar
import math
from datetime import date, timedelta

from busplan.scheduling.intervals import Instant, as_instant

SECONDS_PER_DAY = 24 * 60 * 60


def days_until(target: Instant, now: Instant) -> int:
    """Ceiling of (target - now) in days. Negative once target has passed."""
    delta = as_instant(target) - as_instant(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def trip_duration_days(start: Instant, end: Instant) -> int:
    """Length of a trip in (ceiled) days, regardless of argument order."""
    return abs(days_until(end, start))


def add_months(d: date, months: int) -> date:
    """Calendar month shift, clamped to the last day (31 Jan + 1 → 28/29 Feb)."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def add_years(d: date, years: int) -> date:
    return add_months(d, 12 * years)


def week_bounds(d: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing d."""
    monday = d - timedelta(days=d.weekday())
    return monday, monday + timedelta(days=6)
