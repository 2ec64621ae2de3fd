from pydantic import BaseModel, field_validator, model_validator
from datetime import datetime
from typing import Optional

from busplan.scheduling.intervals import as_instant


class AssignmentFields(BaseModel):
    bus_id: str
    driver_id: str
    second_driver_id: Optional[str] = None
    start: datetime
    end: datetime

    @field_validator("bus_id", "driver_id")
    @classmethod
    def not_blank(cls, v):
        assert v.strip(), "must not be blank"
        return v

    @field_validator("start", "end")
    @classmethod
    def naive_utc(cls, v):
        # stored rows are naive UTC; "Z" / "+02:00" inputs are converted
        return as_instant(v)

    @model_validator(mode="after")
    def start_before_end(self):
        assert self.start <= self.end, f"start {self.start} is after end {self.end}"
        return self

    @model_validator(mode="after")
    def distinct_drivers(self):
        assert self.second_driver_id != self.driver_id, \
            "second_driver_id must differ from driver_id"
        return self


class AssignmentRequest(AssignmentFields):
    exclude_booking_number: Optional[str] = None


class BookingRequest(AssignmentFields):
    confirmed: bool = False


class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: dict[str, list[str]]


class BookingResponse(BaseModel):
    booking_number: str
    reservation_ids: list[str]
    status: str
