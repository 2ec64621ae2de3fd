"""
Booking workflow — one transaction per booking:
  1. lock the bus and driver rows (resource_locks)
  2. re-run the assignment check under those locks
  3. mint the booking number in the same transaction
  4. store one reservation per resource, commit

Any failure rolls the whole transaction back, so a conflicting or failed
booking leaves neither reservations nor a spent sequence behind.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from busplan.repository import ReservationRepository
from busplan.scheduling.conflicts import check_assignment
from busplan.scheduling.intervals import (
    Instant, Interval, Reservation, ReservationStatus, ResourceKind
)
from busplan.numbering.allocator import next_booking_number, year_month_key
from busplan.numbering.stores import SqlCounterStore

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    booking_number: str
    reservation_ids: list
    status: ReservationStatus


def create_booking(
    session: Session,
    bus_id: str,
    driver_id: str,
    start: Instant,
    end: Instant,
    now: datetime,
    second_driver_id: Optional[str] = None,
    confirmed: bool = False,
) -> BookingResult:
    """
    Raises InvalidIntervalError before touching the database,
    ResourceConflictError when a resource is taken (all taken resources in
    .all_conflicts), CounterPersistenceError when no number can be minted.
    """
    interval = Interval.of(start, end, bus_id)
    resources = [(ResourceKind.BUS, bus_id, "BUS"),
                 (ResourceKind.DRIVER, driver_id, "DRV1")]
    if second_driver_id:
        resources.append((ResourceKind.DRIVER, second_driver_id, "DRV2"))

    repo = ReservationRepository(session)
    status = ReservationStatus.CONFIRMED if confirmed else ReservationStatus.PENDING
    try:
        repo.lock_resources([(kind, rid) for kind, rid, _ in resources])
        check_assignment(
            bus_id, driver_id, interval.start, interval.end, repo,
            second_driver_id=second_driver_id,
        ).raise_for_conflicts()

        number = next_booking_number(year_month_key(now),
                                     SqlCounterStore(session, autocommit=False))
        ids = []
        for kind, rid, suffix in resources:
            view = Reservation(
                resource_id=rid, resource_kind=kind,
                start=interval.start, end=interval.end,
                status=status, id=f"{number}-{suffix}", booking_number=number,
            )
            repo.add(view)
            ids.append(view.id)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("booking %s created for bus %s", number, bus_id)
    return BookingResult(booking_number=number, reservation_ids=ids, status=status)
