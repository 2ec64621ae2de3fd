from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Date, Index,
    Enum as SAEnum
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from busplan.scheduling.intervals import (
    Reservation as ReservationView, ReservationStatus, ResourceKind
)
from busplan.aggregates.maintenance import MaintenanceType, MaintenanceWindow

Base = declarative_base()


# ── Reservations ──────────────────────────────────────────────────────────────

class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String, primary_key=True)              # e.g. "ER-2506-0001-BUS"
    booking_number = Column(String, nullable=False, index=True)
    resource_id = Column(String, nullable=False)       # bus or driver id
    resource_kind = Column(SAEnum(ResourceKind), nullable=False)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    status = Column(SAEnum(ReservationStatus), nullable=False,
                    default=ReservationStatus.PENDING)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_reservations_resource", "resource_kind", "resource_id"),
    )

    def to_view(self) -> ReservationView:
        return ReservationView(
            resource_id=self.resource_id, resource_kind=self.resource_kind,
            start=self.start, end=self.end, status=self.status,
            id=self.id, booking_number=self.booking_number,
        )


# ── Booking numbers ───────────────────────────────────────────────────────────

class BookingCounter(Base):
    __tablename__ = "booking_counters"

    year_month_key = Column(String(4), primary_key=True)   # "2506"
    last_sequence = Column(Integer, nullable=False, default=0)


class ResourceLock(Base):
    """
    One row per bus / driver. Booking transactions bump it before their
    availability check, so two bookings of the same resource run one after
    the other.
    """
    __tablename__ = "resource_locks"

    resource_kind = Column(String, primary_key=True)   # "BUS" | "DRIVER"
    resource_id = Column(String, primary_key=True)
    version = Column(Integer, nullable=False, default=0)


# ── Fleet / drivers ───────────────────────────────────────────────────────────

class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bus_id = Column(String, nullable=False, index=True)
    type = Column(SAEnum(MaintenanceType), nullable=False)  # HU | SP
    due_date = Column(Date, nullable=False)
    performed_on = Column(Date, nullable=True)
    issued_on = Column(Date, nullable=True)
    completed = Column(Boolean, default=False)

    def to_window(self) -> MaintenanceWindow:
        return MaintenanceWindow(
            bus_id=self.bus_id, type=self.type, due_date=self.due_date,
            completed=bool(self.completed), performed_on=self.performed_on,
            issued_on=self.issued_on,
        )


class WorkTimeEntry(Base):
    __tablename__ = "work_time_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(String, nullable=False, index=True)
    day = Column(Date, nullable=False)
    total_driving_minutes = Column(Integer, nullable=False, default=0)
