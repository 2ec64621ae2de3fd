"""
In-memory reservation store.
Tracks what's already booked per resource, acts as a reservation
provider for the overlap engine and refuses conflicting inserts.
"""
import threading
from dataclasses import dataclass, field, replace
from typing import Optional

from busplan.errors import ResourceConflictError
from busplan.scheduling.conflicts import find_conflicting_reservations
from busplan.scheduling.intervals import (
    Instant, Reservation, ReservationStatus, ResourceKind
)


@dataclass
class InMemoryReservationStore:
    booked: dict = field(default_factory=dict)      # (kind, resource_id) → [Reservation]
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _key(self, resource_id: str, kind: ResourceKind) -> tuple:
        return (ResourceKind(kind), resource_id)

    def list_reservations_for(self, resource_id: str,
                              resource_kind: ResourceKind) -> list[Reservation]:
        with self._lock:
            return list(self.booked.get(self._key(resource_id, resource_kind), []))

    def add(self, reservation: Reservation):
        """Store as-is, no conflict check (loading existing data)."""
        with self._lock:
            self.booked.setdefault(
                self._key(reservation.resource_id, reservation.resource_kind), []
            ).append(reservation)

    def book(self, resource_id: str, kind: ResourceKind, start: Instant, end: Instant,
             reservation_id: str, status: ReservationStatus = ReservationStatus.PENDING,
             booking_number: Optional[str] = None) -> Reservation:
        """Check + insert under one lock so two callers can't both win."""
        with self._lock:
            existing = self.booked.get(self._key(resource_id, kind), [])
            found = find_conflicting_reservations(resource_id, kind, start, end, existing)
            if found:
                raise ResourceConflictError(resource_id, ResourceKind(kind).value,
                                            start, end, [r.id for r in found])
            reservation = Reservation(
                resource_id=resource_id, resource_kind=kind, start=start, end=end,
                status=status, id=reservation_id, booking_number=booking_number,
            )
            self.booked.setdefault(self._key(resource_id, kind), []).append(reservation)
            return reservation

    def set_status(self, reservation_id: str, status: ReservationStatus) -> int:
        """Status transition (e.g. → CANCELLED). Returns number of rows touched."""
        touched = 0
        with self._lock:
            for key, items in self.booked.items():
                for i, r in enumerate(items):
                    if r.id == reservation_id:
                        items[i] = replace(r, status=ReservationStatus(status))
                        touched += 1
        return touched
