"""
Regulatory driving-time budget for drivers.

EU limits applied here:
  - 9 h driving per day   (540 min)
  - 56 h driving per week (3360 min)
Consumed time comes from per-day work records; the week is the ISO week
(Mon–Sun) containing the day asked about.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from busplan.aggregates.dates import week_bounds

DAILY_CAP_MINUTES = 9 * 60
WEEKLY_CAP_MINUTES = 56 * 60


@dataclass(frozen=True)
class WorkDay:
    day: date
    driving_minutes: int


@dataclass(frozen=True)
class DrivingBudget:
    daily: int
    weekly: int


@dataclass(frozen=True)
class DrivingTimeLedger:
    driver_id: str
    date: date
    consumed_minutes_driving: int
    consumed_minutes_week: int

    @property
    def remaining(self) -> DrivingBudget:
        return remaining_driving_time(self.consumed_minutes_driving,
                                      self.consumed_minutes_week)


def remaining_driving_time(daily_consumed_minutes, weekly_consumed_minutes) -> DrivingBudget:
    return DrivingBudget(
        daily=max(0, DAILY_CAP_MINUTES - (daily_consumed_minutes or 0)),
        weekly=max(0, WEEKLY_CAP_MINUTES - (weekly_consumed_minutes or 0)),
    )


def _as_day(d) -> date:
    return d.date() if isinstance(d, datetime) else d


def daily_driving_time(entries: Iterable[WorkDay], day: date) -> int:
    """Driving minutes recorded for that calendar day (0 if none)."""
    day = _as_day(day)
    return sum(e.driving_minutes or 0 for e in entries if _as_day(e.day) == day)


def weekly_driving_time(entries: Iterable[WorkDay], day: date) -> int:
    monday, sunday = week_bounds(_as_day(day))
    return sum(e.driving_minutes or 0 for e in entries
               if monday <= _as_day(e.day) <= sunday)


def driving_ledger(driver_id: str, entries: Iterable[WorkDay], day: date) -> DrivingTimeLedger:
    entries = list(entries)
    return DrivingTimeLedger(
        driver_id=driver_id,
        date=_as_day(day),
        consumed_minutes_driving=daily_driving_time(entries, day),
        consumed_minutes_week=weekly_driving_time(entries, day),
    )
