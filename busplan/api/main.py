"""
FastAPI app — the booking workflow side of the scheduling core:
  POST /availability/check
  POST /bookings
  POST /bookings/{booking_number}/cancel
  GET  /reservations
  GET  /buses/{bus_id}/maintenance
  GET  /maintenance/due
  GET  /drivers/{driver_id}/driving-time
  GET  /trips/occupancy

The wall clock is read once per request (get_now) and passed down.
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException
from sqlalchemy.orm import Session

from busplan.database import get_db, init_db
from busplan.errors import (
    CounterPersistenceError, InvalidIntervalError, ResourceConflictError
)
from busplan.repository import (
    MaintenanceRepository, ReservationRepository, WorkTimeRepository
)
from busplan.scheduling.conflicts import check_assignment, find_in_date_range
from busplan.scheduling.intervals import ReservationStatus, as_instant
from busplan.workflow import create_booking as book_resources
from busplan.aggregates.dates import week_bounds
from busplan.aggregates.driving_time import driving_ledger
from busplan.aggregates.maintenance import (
    find_due_for_maintenance, maintenance_status, next_due_dates
)
from busplan.aggregates.occupancy import available_seats, occupancy_rate
from busplan.api.schemas import (
    AssignmentRequest, AvailabilityResponse, BookingRequest, BookingResponse
)

logger = logging.getLogger(__name__)

app = FastAPI(title="busplan Scheduling API", version="1.0.0")


@app.on_event("startup")
def startup():
    init_db()
    logger.info("database initialized")


def get_now() -> datetime:
    # naive UTC, like every stored instant
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Availability ──────────────────────────────────────────────────────────────

@app.post("/availability/check", response_model=AvailabilityResponse)
def availability_check(req: AssignmentRequest, db: Session = Depends(get_db)):
    check = _check(req, db)
    return {"available": check.available, "conflicts": check.conflicting_ids()}


# ── Bookings ──────────────────────────────────────────────────────────────────

@app.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(req: BookingRequest, db: Session = Depends(get_db),
                   now: datetime = Depends(get_now)):
    """
    1. bus + driver(s) must be free (409 otherwise)
    2. mint a booking number (503 if the counter store fails)
    3. store one reservation per resource
    All three run in one transaction holding the resource locks.
    """
    try:
        result = book_resources(
            db, req.bus_id, req.driver_id, req.start, req.end, now,
            second_driver_id=req.second_driver_id, confirmed=req.confirmed,
        )
    except InvalidIntervalError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ResourceConflictError as e:
        raise HTTPException(status_code=409, detail={
            "message": "Resources not available",
            "conflicts": e.all_conflicts,
        })
    except CounterPersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {"booking_number": result.booking_number,
            "reservation_ids": result.reservation_ids,
            "status": result.status.value}


@app.post("/bookings/{booking_number}/cancel")
def cancel_booking(booking_number: str, db: Session = Depends(get_db)):
    touched = ReservationRepository(db).set_booking_status(
        booking_number, ReservationStatus.CANCELLED
    )
    if not touched:
        raise HTTPException(status_code=404, detail=f"Unknown booking {booking_number}")
    db.commit()
    return {"booking_number": booking_number, "status": ReservationStatus.CANCELLED.value,
            "reservations": touched}


@app.get("/reservations")
def reservations_in_range(start: datetime, end: datetime, db: Session = Depends(get_db)):
    start, end = as_instant(start), as_instant(end)
    try:
        hits = find_in_date_range(ReservationRepository(db).list_in_window(start, end),
                                  start, end)
    except InvalidIntervalError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "total": len(hits),
        "reservations": [
            {
                "id": r.id, "booking_number": r.booking_number,
                "resource_id": r.resource_id, "resource_kind": r.resource_kind.value,
                "start": r.start.isoformat(), "end": r.end.isoformat(),
                "status": r.status.value,
            }
            for r in hits
        ],
    }


# ── Fleet + drivers ───────────────────────────────────────────────────────────

@app.get("/buses/{bus_id}/maintenance")
def bus_maintenance(bus_id: str, db: Session = Depends(get_db),
                    now: datetime = Depends(get_now)):
    windows = MaintenanceRepository(db).windows_for(bus_id)
    issues = []
    status = maintenance_status(windows, bus_id, now, issues)
    return {
        "bus_id": bus_id,
        "status": status,
        "next_due": next_due_dates(windows),
        "warnings": [w.as_dict() for w in issues],
    }


@app.get("/maintenance/due")
def maintenance_due(days: int = 30, db: Session = Depends(get_db),
                    now: datetime = Depends(get_now)):
    return {"days": days,
            "bus_ids": find_due_for_maintenance(MaintenanceRepository(db).all_windows(),
                                                now, days)}


@app.get("/drivers/{driver_id}/driving-time")
def driving_time(driver_id: str, day: Optional[date] = None,
                 db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    day = day or now.date()
    monday, sunday = week_bounds(day)
    entries = WorkTimeRepository(db).work_days(driver_id, monday, sunday)
    ledger = driving_ledger(driver_id, entries, day)
    remaining = ledger.remaining
    return {
        "driver_id": driver_id,
        "date": ledger.date.isoformat(),
        "consumed": {"daily": ledger.consumed_minutes_driving,
                     "weekly": ledger.consumed_minutes_week},
        "remaining": {"daily": remaining.daily, "weekly": remaining.weekly},
    }


@app.get("/trips/occupancy")
def trip_occupancy(current: int = 0, maximum: Optional[int] = None):
    issues = []
    seats = available_seats(current, maximum, issues)
    return {
        "occupancy_rate": occupancy_rate(current, maximum),
        "available_seats": seats,
        "warnings": [w.as_dict() for w in issues],
    }


# ── Helpers ───────────────────────────────────────────────────────────────────

def _check(req: AssignmentRequest, db: Session):
    try:
        return check_assignment(
            req.bus_id, req.driver_id, req.start, req.end,
            ReservationRepository(db),
            second_driver_id=req.second_driver_id,
            exclude_booking_number=req.exclude_booking_number,
        )
    except InvalidIntervalError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ── Health check ──────────────────────────────────────────────────────────────

@app.get("/")
def root():
    return {
        "service": "busplan Scheduling API",
        "version": "1.0.0",
        "endpoints": ["/availability/check", "/bookings", "/reservations",
                      "/buses/{bus_id}/maintenance", "/maintenance/due",
                      "/drivers/{driver_id}/driving-time", "/trips/occupancy"],
    }
