"""
SQLAlchemy adapters the scheduling core is fed through.

ReservationRepository  → reservation provider for the overlap engine
                         + the writes the booking workflow needs
MaintenanceRepository  → maintenance windows per bus
WorkTimeRepository     → per-day driving minutes per driver
"""
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from busplan.models import (
    MaintenanceRecord, Reservation, ResourceLock, WorkTimeEntry
)
from busplan.scheduling.intervals import (
    Reservation as ReservationView, ReservationStatus, ResourceKind
)
from busplan.aggregates.driving_time import WorkDay
from busplan.aggregates.maintenance import MaintenanceWindow


def dialect_insert(session: Session, model):
    """INSERT that supports ON CONFLICT DO UPDATE for the bound dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise ValueError(f"no atomic upsert for dialect {dialect}")


class ReservationRepository:
    def __init__(self, session: Session):
        self.session = session

    def list_reservations_for(self, resource_id: str,
                              resource_kind: ResourceKind) -> list[ReservationView]:
        rows = self.session.scalars(
            select(Reservation).where(
                Reservation.resource_id == resource_id,
                Reservation.resource_kind == ResourceKind(resource_kind),
            )
        ).all()
        return [r.to_view() for r in rows]

    def list_in_window(self, start: datetime, end: datetime) -> list[ReservationView]:
        rows = self.session.scalars(
            select(Reservation).where(Reservation.start <= end, Reservation.end >= start)
        ).all()
        return [r.to_view() for r in rows]

    def lock_resources(self, resources) -> None:
        """
        Take the row lock of every (kind, resource_id) for the rest of the
        current transaction. Rows are touched in sorted order so two
        bookings sharing resources cannot deadlock.
        """
        for kind, rid in sorted({(ResourceKind(k).value, r) for k, r in resources}):
            stmt = dialect_insert(self.session, ResourceLock).values(
                resource_kind=kind, resource_id=rid, version=1
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[ResourceLock.resource_kind, ResourceLock.resource_id],
                set_={"version": ResourceLock.version + 1},
            )
            self.session.execute(stmt)

    def add(self, view: ReservationView) -> Reservation:
        row = Reservation(
            id=view.id, booking_number=view.booking_number,
            resource_id=view.resource_id, resource_kind=view.resource_kind,
            start=view.start, end=view.end, status=view.status,
        )
        self.session.add(row)
        return row

    def set_booking_status(self, booking_number: str, status: ReservationStatus) -> int:
        result = self.session.execute(
            update(Reservation)
            .where(Reservation.booking_number == booking_number)
            .values(status=ReservationStatus(status))
        )
        return result.rowcount


class MaintenanceRepository:
    def __init__(self, session: Session):
        self.session = session

    def windows_for(self, bus_id: str) -> list[MaintenanceWindow]:
        rows = self.session.scalars(
            select(MaintenanceRecord).where(MaintenanceRecord.bus_id == bus_id)
        ).all()
        return [r.to_window() for r in rows]

    def all_windows(self) -> list[MaintenanceWindow]:
        return [r.to_window() for r in self.session.scalars(select(MaintenanceRecord)).all()]


class WorkTimeRepository:
    def __init__(self, session: Session):
        self.session = session

    def work_days(self, driver_id: str, since: date, until: date) -> list[WorkDay]:
        rows = self.session.scalars(
            select(WorkTimeEntry).where(
                WorkTimeEntry.driver_id == driver_id,
                WorkTimeEntry.day >= since,
                WorkTimeEntry.day <= until,
            )
        ).all()
        return [WorkDay(day=r.day, driving_minutes=r.total_driving_minutes) for r in rows]
