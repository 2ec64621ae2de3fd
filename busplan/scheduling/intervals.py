"""
Interval primitives shared by the overlap engine and the aggregates.

All comparisons are on closed intervals [start, end]. Plain dates are
treated as midnight of that day so date-only bookings and timestamped
bookings can be mixed.
"""
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Optional, Union

from busplan.errors import InvalidIntervalError

Instant = Union[date, datetime]


# ── Enums ────────────────────────────────────────────────────────────────────

class ResourceKind(str, enum.Enum):
    BUS = "BUS"
    DRIVER = "DRIVER"


class ReservationStatus(str, enum.Enum):
    INQUIRY = "INQUIRY"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def blocks_resource(self) -> bool:
        """Whether a reservation in this status counts toward conflicts."""
        return self is not ReservationStatus.CANCELLED


# ── Instants ─────────────────────────────────────────────────────────────────

def as_instant(value: Instant) -> datetime:
    """
    date → datetime at 00:00. Aware datetimes are converted to UTC and
    stored naive; naive datetimes are taken to be UTC already.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


# ── Interval ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self):
        start, end = as_instant(self.start), as_instant(self.end)
        if start > end:
            raise InvalidIntervalError(start, end)
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def of(cls, start: Instant, end: Instant,
           resource_id: Optional[str] = None) -> "Interval":
        """Like Interval(start, end) but tags the error with the resource."""
        try:
            return cls(start, end)
        except InvalidIntervalError as e:
            raise InvalidIntervalError(e.start, e.end, resource_id) from None


def overlaps(a, b) -> bool:
    """
    Inclusive overlap: touching endpoints count.
    Works on anything with start/end (Interval, Reservation).
    """
    return a.start <= b.end and b.start <= a.end


def overlaps_by_clauses(existing: Interval, window: Interval) -> bool:
    """
    The three-clause range query of the booking store:
      starts inside the window, ends inside it, or spans it.
    Must agree with overlaps() for every pair of valid intervals.
    """
    starts_inside = window.start <= existing.start <= window.end
    ends_inside = window.start <= existing.end <= window.end
    spans = existing.start <= window.start and existing.end >= window.end
    return starts_inside or ends_inside or spans


# ── Reservation view ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Reservation:
    """Read-only view of one resource commitment, as the engine sees it."""
    resource_id: str
    resource_kind: ResourceKind
    start: datetime
    end: datetime
    status: ReservationStatus = ReservationStatus.PENDING
    id: Optional[str] = None
    booking_number: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "resource_kind", ResourceKind(self.resource_kind))
        object.__setattr__(self, "status", ReservationStatus(self.status))
        object.__setattr__(self, "start", as_instant(self.start))
        object.__setattr__(self, "end", as_instant(self.end))

    @property
    def blocks_resource(self) -> bool:
        return self.status.blocks_resource
