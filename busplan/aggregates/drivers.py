"""
Driver availability for a calendar day and document expiry alerts.

A driver can take a trip on a day only when their status is "available"
and no work is logged for that day. Documents (licence, medical, ...)
count as expiring once the expiry date falls within the lookahead,
counted with days_until(); already expired documents do not.
"""
import enum
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from busplan.aggregates.dates import days_until
from busplan.aggregates.driving_time import WorkDay
from busplan.scheduling.intervals import Instant, as_instant

EXPIRY_LOOKAHEAD_DAYS = 30


class DriverStatus(str, enum.Enum):
    AVAILABLE = "available"
    DRIVING = "driving"
    VACATION = "vacation"
    SICK = "sick"
    TRAINING = "training"
    INACTIVE = "inactive"


class DocumentType(str, enum.Enum):
    LICENSE = "LICENSE"
    CERTIFICATION = "CERTIFICATION"
    MEDICAL = "MEDICAL"
    OTHER = "OTHER"


@dataclass(frozen=True)
class DriverDocument:
    driver_id: str
    type: DocumentType
    name: str
    expiry_date: date

    def __post_init__(self):
        object.__setattr__(self, "type", DocumentType(self.type))


# ── Availability ─────────────────────────────────────────────────────────────

def is_driver_available_on(status, work_days: Iterable[WorkDay], day: Instant) -> bool:
    if DriverStatus(status) is not DriverStatus.AVAILABLE:
        return False
    day = as_instant(day).date()
    return not any(as_instant(w.day).date() == day for w in work_days)


# ── Documents ────────────────────────────────────────────────────────────────

def is_document_expiring(expiry_date: Instant, now: Instant,
                         days: int = EXPIRY_LOOKAHEAD_DAYS) -> bool:
    """now <= expiry <= now + days"""
    if as_instant(expiry_date) < as_instant(now):
        return False
    return days_until(expiry_date, now) <= days


def has_expiring_documents(documents: Iterable[DriverDocument], now: Instant,
                           days: int = EXPIRY_LOOKAHEAD_DAYS) -> bool:
    return any(is_document_expiring(d.expiry_date, now, days) for d in documents)


def find_drivers_with_expiring_documents(
    documents: Iterable[DriverDocument],
    now: Instant,
    days: int = EXPIRY_LOOKAHEAD_DAYS,
    active_driver_ids: Optional[Iterable[str]] = None,
) -> list[str]:
    """
    Sorted ids of drivers holding at least one expiring document.
    With active_driver_ids, drivers outside that set are skipped.
    """
    active = set(active_driver_ids) if active_driver_ids is not None else None
    return sorted({
        d.driver_id for d in documents
        if (active is None or d.driver_id in active)
        and is_document_expiring(d.expiry_date, now, days)
    })
