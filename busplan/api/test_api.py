"""
API tests against an in-memory SQLite database.
"""
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from busplan.api.main import app, get_now
from busplan.database import get_db
from busplan.errors import CounterPersistenceError
from busplan.models import Base, MaintenanceRecord, WorkTimeEntry
from busplan.aggregates.maintenance import MaintenanceType

NOW = datetime(2025, 6, 14, 10, 0)


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False},
                           poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def client(session_factory):
    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


def book(client, bus="B1", driver="D1", start="2025-06-01T00:00:00",
         end="2025-06-03T00:00:00", **extra):
    return client.post("/bookings", json={
        "bus_id": bus, "driver_id": driver, "start": start, "end": end, **extra,
    })


class TestBookings:
    def test_create_booking_mints_number(self, client):
        resp = book(client, confirmed=True)

        assert resp.status_code == 201
        data = resp.json()
        assert data["booking_number"] == "ER-2506-0001"
        assert data["reservation_ids"] == ["ER-2506-0001-BUS", "ER-2506-0001-DRV1"]
        assert data["status"] == "CONFIRMED"

    def test_numbers_increase_within_month(self, client):
        book(client)
        resp = book(client, bus="B2", driver="D2")
        assert resp.json()["booking_number"] == "ER-2506-0002"

    def test_touching_booking_is_rejected(self, client):
        book(client)
        resp = book(client, driver="D9", start="2025-06-03T00:00:00",
                    end="2025-06-05T00:00:00")

        assert resp.status_code == 409
        assert resp.json()["detail"]["conflicts"] == {"BUS:B1": ["ER-2506-0001-BUS"]}

    def test_driver_conflict_with_other_bus(self, client):
        book(client)
        resp = book(client, bus="B2", start="2025-06-02T00:00:00",
                    end="2025-06-02T12:00:00")
        assert resp.status_code == 409
        assert "DRIVER:D1" in resp.json()["detail"]["conflicts"]

    def test_second_driver_reserved(self, client):
        resp = book(client, second_driver_id="D2")
        assert resp.json()["reservation_ids"][-1] == "ER-2506-0001-DRV2"

        clash = book(client, bus="B5", driver="D2")
        assert clash.status_code == 409

    def test_cancel_releases_resources(self, client):
        number = book(client).json()["booking_number"]

        resp = client.post(f"/bookings/{number}/cancel")
        assert resp.status_code == 200
        assert resp.json()["reservations"] == 2

        again = book(client)
        assert again.status_code == 201
        assert again.json()["booking_number"] == "ER-2506-0002"

    def test_cancel_unknown_booking(self, client):
        assert client.post("/bookings/ER-2506-9999/cancel").status_code == 404

    def test_inverted_interval_is_422(self, client):
        resp = book(client, start="2025-06-05T00:00:00", end="2025-06-01T00:00:00")
        assert resp.status_code == 422

    def test_booking_cannot_exclude_an_existing_booking(self, client):
        number = book(client).json()["booking_number"]

        resp = book(client, exclude_booking_number=number)
        assert resp.status_code == 409
        assert resp.json()["detail"]["conflicts"] == {
            "BUS:B1": [f"{number}-BUS"], "DRIVER:D1": [f"{number}-DRV1"]}

    def test_utc_suffixed_times_conflict_with_stored_booking(self, client):
        book(client)
        resp = book(client, driver="D9", start="2025-06-02T00:00:00Z",
                    end="2025-06-04T00:00:00Z")
        assert resp.status_code == 409
        assert resp.json()["detail"]["conflicts"] == {"BUS:B1": ["ER-2506-0001-BUS"]}

    def test_offset_times_are_compared_in_utc(self, client):
        book(client)
        # 01:00 at +02:00 is 23:00 UTC the day before, inside the stored booking
        resp = book(client, driver="D9", start="2025-06-03T01:00:00+02:00",
                    end="2025-06-03T06:00:00+02:00")
        assert resp.status_code == 409

        later = book(client, driver="D9", start="2025-06-03T03:00:00+02:00",
                     end="2025-06-03T06:00:00+02:00")
        assert later.status_code == 201

    def test_mixed_aware_and_naive_bounds(self, client):
        resp = book(client, start="2025-06-01T00:00:00Z", end="2025-06-03T00:00:00")
        assert resp.status_code == 201

    def test_same_driver_twice_is_422(self, client):
        resp = book(client, second_driver_id="D1")
        assert resp.status_code == 422

        check = client.post("/availability/check", json={
            "bus_id": "B1", "driver_id": "D1", "second_driver_id": "D1",
            "start": "2025-06-01T00:00:00", "end": "2025-06-03T00:00:00",
        })
        assert check.status_code == 422

    def test_counter_failure_aborts_booking(self, client, monkeypatch):
        def broken(self, key):
            raise CounterPersistenceError(key, "db down")

        monkeypatch.setattr("busplan.numbering.stores.SqlCounterStore.get_and_increment",
                            broken)
        resp = book(client)
        assert resp.status_code == 503

        monkeypatch.undo()
        listing = client.get("/reservations", params={
            "start": "2025-05-01T00:00:00", "end": "2025-07-01T00:00:00"})
        assert listing.json()["total"] == 0


class TestAvailability:
    def test_check_reports_conflicts(self, client):
        book(client)
        resp = client.post("/availability/check", json={
            "bus_id": "B1", "driver_id": "D2",
            "start": "2025-06-02T00:00:00", "end": "2025-06-04T00:00:00",
        })
        assert resp.status_code == 200
        assert resp.json() == {"available": False,
                               "conflicts": {"BUS:B1": ["ER-2506-0001-BUS"]}}

    def test_check_excluding_own_booking(self, client):
        number = book(client).json()["booking_number"]
        resp = client.post("/availability/check", json={
            "bus_id": "B1", "driver_id": "D1",
            "start": "2025-06-02T00:00:00", "end": "2025-06-04T00:00:00",
            "exclude_booking_number": number,
        })
        assert resp.json()["available"] is True

    def test_reservations_listing(self, client):
        book(client)
        book(client, bus="B2", driver="D2", start="2025-06-20T00:00:00",
             end="2025-06-21T00:00:00")
        resp = client.get("/reservations", params={
            "start": "2025-06-03T00:00:00", "end": "2025-06-10T00:00:00"})
        data = resp.json()
        assert data["total"] == 2
        assert {r["resource_id"] for r in data["reservations"]} == {"B1", "D1"}

    def test_reservations_listing_with_utc_params(self, client):
        book(client)
        resp = client.get("/reservations", params={
            "start": "2025-06-03T00:00:00Z", "end": "2025-06-10T00:00:00+02:00"})
        assert resp.status_code == 200
        assert resp.json()["total"] == 2


class TestAggregates:
    def test_bus_maintenance(self, client, session_factory):
        with session_factory() as db:
            db.add_all([
                MaintenanceRecord(bus_id="B1", type=MaintenanceType.SP,
                                  due_date=date(2025, 6, 20)),
                MaintenanceRecord(bus_id="B1", type=MaintenanceType.HU,
                                  due_date=date(2025, 12, 1)),
                MaintenanceRecord(bus_id="B1", type=MaintenanceType.HU,
                                  due_date=date(2024, 12, 1), completed=True,
                                  performed_on=date(2024, 11, 28)),
            ])
            db.commit()

        data = client.get("/buses/B1/maintenance").json()
        assert data["status"]["SP"]["due_soon"] is True
        assert data["status"]["HU"]["due_soon"] is False
        assert data["next_due"]["HU"] == "2025-11-28"
        assert data["warnings"] == []

        due = client.get("/maintenance/due", params={"days": 14}).json()
        assert due["bus_ids"] == ["B1"]

    def test_driving_time(self, client, session_factory):
        with session_factory() as db:
            db.add_all([
                WorkTimeEntry(driver_id="D1", day=date(2025, 6, 9), total_driving_minutes=500),
                WorkTimeEntry(driver_id="D1", day=date(2025, 6, 13), total_driving_minutes=420),
                WorkTimeEntry(driver_id="D1", day=date(2025, 6, 14), total_driving_minutes=600),
                WorkTimeEntry(driver_id="D2", day=date(2025, 6, 14), total_driving_minutes=60),
            ])
            db.commit()

        data = client.get("/drivers/D1/driving-time").json()
        assert data["date"] == "2025-06-14"
        assert data["consumed"] == {"daily": 600, "weekly": 1520}
        assert data["remaining"] == {"daily": 0, "weekly": 3360 - 1520}

    def test_occupancy(self, client):
        assert client.get("/trips/occupancy", params={"current": 5, "maximum": 0}).json() == {
            "occupancy_rate": 0, "available_seats": 0, "warnings": []}

        data = client.get("/trips/occupancy", params={"current": 55, "maximum": 50}).json()
        assert data["available_seats"] == 0
        assert data["warnings"][0]["code"] == "OVERBOOKED"

    def test_health(self, client):
        assert client.get("/").json()["service"] == "busplan Scheduling API"
