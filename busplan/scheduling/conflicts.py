"""
Interval overlap engine — decides whether a bus or driver is free.

Pure functions over a snapshot of reservations supplied by the caller.
Flow for a candidate [start, end]:
  1. Reject inverted intervals (InvalidIntervalError)
  2. Keep reservations of the same resource that still block it
     (everything except CANCELLED, minus the reservation being edited)
  3. Inclusive overlap test (intervals.overlaps)
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from busplan.errors import ResourceConflictError
from busplan.scheduling.intervals import (
    Instant, Interval, Reservation, ResourceKind, overlaps
)

logger = logging.getLogger(__name__)


class ReservationProvider(Protocol):
    def list_reservations_for(self, resource_id: str,
                              resource_kind: ResourceKind) -> list[Reservation]:
        ...


# ── Core queries ─────────────────────────────────────────────────────────────

def find_conflicting_reservations(
    resource_id: str,
    resource_kind: ResourceKind,
    candidate_start: Instant,
    candidate_end: Instant,
    existing_reservations: Iterable[Reservation],
    exclude_reservation_id: Optional[str] = None,
) -> list[Reservation]:
    """All blocking reservations that overlap the candidate, sorted by start."""
    candidate = Interval.of(candidate_start, candidate_end, resource_id)
    kind = ResourceKind(resource_kind)

    conflicts = [
        r for r in existing_reservations
        if r.resource_id == resource_id
        and r.resource_kind == kind
        and r.blocks_resource
        and not (exclude_reservation_id is not None and r.id == exclude_reservation_id)
        and overlaps(r, candidate)
    ]
    return sorted(conflicts, key=lambda r: (r.start, r.end, str(r.id)))


def has_conflict(
    resource_id: str,
    resource_kind: ResourceKind,
    candidate_start: Instant,
    candidate_end: Instant,
    existing_reservations: Iterable[Reservation],
    exclude_reservation_id: Optional[str] = None,
) -> bool:
    return bool(find_conflicting_reservations(
        resource_id, resource_kind, candidate_start, candidate_end,
        existing_reservations, exclude_reservation_id,
    ))


def is_resource_available(
    resource_id: str,
    resource_kind: ResourceKind,
    start: Instant,
    end: Instant,
    reservations_provider: ReservationProvider,
    exclude_reservation_id: Optional[str] = None,
) -> bool:
    """Fetch the resource's reservations through the provider and check them."""
    # validate before touching the provider
    Interval.of(start, end, resource_id)
    existing = reservations_provider.list_reservations_for(
        resource_id, ResourceKind(resource_kind)
    )
    return not has_conflict(resource_id, resource_kind, start, end,
                            existing, exclude_reservation_id)


def find_in_date_range(reservations: Iterable[Reservation],
                       start: Instant, end: Instant) -> list[Reservation]:
    """
    Every reservation (any resource, any status) touching the window.
    Used for calendar/overview listings, not for conflict decisions.
    """
    window = Interval(start, end)
    hits = [r for r in reservations if overlaps(r, window)]
    return sorted(hits, key=lambda r: (r.start, r.end, str(r.id)))


# ── Bus + driver assignment ──────────────────────────────────────────────────

@dataclass
class AssignmentCheck:
    start: object
    end: object
    conflicts: dict = field(default_factory=dict)   # (kind, resource_id) → [Reservation]

    @property
    def available(self) -> bool:
        return not any(self.conflicts.values())

    def conflicting_ids(self) -> dict:
        """'BUS:B1' → ['r1', 'r2'] for every resource that is taken."""
        return {
            f"{kind.value}:{rid}": [r.id for r in found]
            for (kind, rid), found in self.conflicts.items() if found
        }

    def raise_for_conflicts(self):
        """Raise on the first taken resource; the error carries all of them."""
        for (kind, rid), found in self.conflicts.items():
            if found:
                raise ResourceConflictError(rid, kind.value, self.start, self.end,
                                            [r.id for r in found],
                                            all_conflicts=self.conflicting_ids())


def check_assignment(
    bus_id: str,
    driver_id: str,
    start: Instant,
    end: Instant,
    reservations_provider: ReservationProvider,
    second_driver_id: Optional[str] = None,
    exclude_booking_number: Optional[str] = None,
) -> AssignmentCheck:
    """
    Check a bus, its driver and an optional second driver in one go.
    A booking being edited passes its own number so the reservations it
    already holds on each resource are skipped.
    """
    interval = Interval.of(start, end, bus_id)
    resources = [(ResourceKind.BUS, bus_id), (ResourceKind.DRIVER, driver_id)]
    if second_driver_id:
        resources.append((ResourceKind.DRIVER, second_driver_id))

    check = AssignmentCheck(start=interval.start, end=interval.end)
    for kind, rid in resources:
        existing = [
            r for r in reservations_provider.list_reservations_for(rid, kind)
            if exclude_booking_number is None or r.booking_number != exclude_booking_number
        ]
        found = find_conflicting_reservations(
            rid, kind, interval.start, interval.end, existing
        )
        check.conflicts[(kind, rid)] = found
        if found:
            logger.info("%s %s taken between %s and %s by %s", kind.value, rid,
                        interval.start, interval.end, [r.id for r in found])
    return check
