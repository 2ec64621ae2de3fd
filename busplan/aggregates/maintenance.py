"""
Maintenance due-soon windows for buses.

Two German inspection regimes:
  HU (Hauptuntersuchung)  → yearly,     alert 30 days ahead
  SP (Sicherheitsprüfung) → quarterly,  alert 14 days ahead

Overdue windows are still "due soon" (negative day count <= threshold).
Completed windows never are.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from busplan.aggregates.dates import add_months, days_until
from busplan.errors import DataIntegrityWarning
from busplan.scheduling.intervals import Instant, as_instant

logger = logging.getLogger(__name__)


class MaintenanceType(str, enum.Enum):
    HU = "HU"
    SP = "SP"


# type → (lookahead days, months until the next inspection once done)
MAINTENANCE_RULES = {
    MaintenanceType.HU: {"lookahead_days": 30, "interval_months": 12},
    MaintenanceType.SP: {"lookahead_days": 14, "interval_months": 3},
}


@dataclass(frozen=True)
class MaintenanceWindow:
    bus_id: str
    type: MaintenanceType
    due_date: date
    completed: bool = False
    performed_on: Optional[date] = None
    issued_on: Optional[date] = None

    def __post_init__(self):
        object.__setattr__(self, "type", MaintenanceType(self.type))


def is_maintenance_due_soon(window_type, due_date: Instant, now: Instant) -> bool:
    threshold = MAINTENANCE_RULES[MaintenanceType(window_type)]["lookahead_days"]
    return days_until(due_date, now) <= threshold


def active_window(windows: Iterable[MaintenanceWindow], bus_id: str,
                  window_type, now: Instant,
                  issues: Optional[list] = None) -> Optional[MaintenanceWindow]:
    """
    The incomplete window that decides due-soon for (bus, type).
    Nearest future due date wins; with nothing ahead, the most recently
    overdue one is used.
    """
    wtype = MaintenanceType(window_type)
    now_dt = as_instant(now)
    candidates = [
        w for w in windows
        if w.bus_id == bus_id and w.type == wtype and not w.completed
    ]
    for w in candidates:
        _check_dates(w, issues)

    upcoming = [w for w in candidates if as_instant(w.due_date) >= now_dt]
    if upcoming:
        return min(upcoming, key=lambda w: as_instant(w.due_date))
    if candidates:
        return max(candidates, key=lambda w: as_instant(w.due_date))
    return None


def maintenance_status(windows: Iterable[MaintenanceWindow], bus_id: str,
                       now: Instant, issues: Optional[list] = None) -> dict:
    """{"HU": {"due_date": ..., "days_left": ..., "due_soon": ...}, "SP": {...}}"""
    windows = list(windows)
    status = {}
    for wtype in MaintenanceType:
        w = active_window(windows, bus_id, wtype, now, issues)
        status[wtype.value] = {
            "due_date": w.due_date if w else None,
            "days_left": days_until(w.due_date, now) if w else None,
            "due_soon": is_maintenance_due_soon(wtype, w.due_date, now) if w else False,
        }
    return status


def next_due_dates(records: Iterable[MaintenanceWindow]) -> dict:
    """
    Next HU / SP derived from the latest completed inspection of each type:
    HU + 1 year, SP + 3 months. None when no inspection was recorded.
    """
    records = list(records)
    result = {}
    for wtype, rule in MAINTENANCE_RULES.items():
        done = [r for r in records if r.type == wtype and r.completed]
        if not done:
            result[wtype.value] = None
            continue
        last = max(done, key=lambda r: r.performed_on or r.due_date)
        performed = last.performed_on or last.due_date
        result[wtype.value] = add_months(performed, rule["interval_months"])
    return result


def find_due_for_maintenance(windows: Iterable[MaintenanceWindow], now: Instant,
                             days: int = 30) -> list[str]:
    """Bus ids with an open window due between today and today + days."""
    today = as_instant(now).date()
    horizon = today + timedelta(days=days)
    return sorted({
        w.bus_id for w in windows
        if not w.completed and today <= as_instant(w.due_date).date() <= horizon
    })


def _check_dates(window: MaintenanceWindow, issues: Optional[list]):
    if window.issued_on and as_instant(window.due_date) < as_instant(window.issued_on):
        warning = DataIntegrityWarning(
            "DUE_BEFORE_ISSUE",
            f"{window.type.value} window of {window.bus_id} is due before it was issued",
            bus_id=window.bus_id, due_date=window.due_date, issued_on=window.issued_on,
        )
        logger.warning("%s", warning)
        if issues is not None:
            issues.append(warning)
