"""
Seat figures for multi-passenger trips.
"""
import logging
from typing import Iterable, Optional

from busplan.errors import DataIntegrityWarning
from busplan.scheduling.intervals import ReservationStatus

logger = logging.getLogger(__name__)

# only these bookings occupy seats on a trip
SEAT_HOLDING_STATUSES = {ReservationStatus.CONFIRMED, ReservationStatus.PAID}


def occupancy_rate(current_passengers, max_passengers) -> float:
    """Percentage 0–100. No capacity configured → 0."""
    if not max_passengers:
        return 0.0
    return (current_passengers or 0) / max_passengers * 100


def available_seats(current_passengers, max_passengers,
                    issues: Optional[list] = None) -> int:
    if not max_passengers:
        return 0
    free = max_passengers - (current_passengers or 0)
    if free < 0:
        warning = DataIntegrityWarning(
            "OVERBOOKED",
            f"{current_passengers} passengers on a trip with {max_passengers} seats",
            current_passengers=current_passengers, max_passengers=max_passengers,
        )
        logger.warning("%s", warning)
        if issues is not None:
            issues.append(warning)
        return 0
    return free


def passenger_count(bookings: Iterable[dict]) -> int:
    """
    Passengers of the bookings assigned to a trip.
    bookings: [{"status": "CONFIRMED", "passengers": [...]}, ...]
    """
    total = 0
    for b in bookings:
        if ReservationStatus(b["status"]) in SEAT_HOLDING_STATUSES:
            total += len(b.get("passengers") or [])
    return total
