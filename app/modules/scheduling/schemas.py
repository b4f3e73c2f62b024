"""Scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

MAX_RECURRING_SPAN_DAYS = 366


class ScheduleSlot(BaseModel):
    """One date + start time to open."""

    schedule_date: date
    start_time: time
    max_participants: int | None = Field(default=None, ge=1)


class ScheduleBulkCreate(BaseModel):
    """Create one or more explicit slots for a class."""

    slots: list[ScheduleSlot] = Field(min_length=1, max_length=500)


class RecurringScheduleCreate(BaseModel):
    """Open slots on chosen weekdays between two dates (inclusive)."""

    start_date: date
    end_date: date
    weekdays: list[int] = Field(min_length=1, description="0=Monday ... 6=Sunday")
    start_times: list[time] = Field(min_length=1)
    max_participants: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_pattern(self) -> "RecurringScheduleCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.end_date - self.start_date).days > MAX_RECURRING_SPAN_DAYS:
            raise ValueError(f"Recurring range cannot exceed {MAX_RECURRING_SPAN_DAYS} days")
        if any(day < 0 or day > 6 for day in self.weekdays):
            raise ValueError("weekdays must be between 0 (Monday) and 6 (Sunday)")
        return self


class ScheduleUpdate(BaseModel):
    """Partial slot update."""

    schedule_date: date | None = None
    start_time: time | None = None
    max_participants: int | None = Field(default=None, ge=1)
    is_active: bool | None = None


class ScheduleRead(BaseModel):
    """Slot response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    class_id: UUID
    schedule_date: date
    start_time: time
    max_participants: int | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ScheduleAvailabilityRead(ScheduleRead):
    """Slot with live occupancy."""

    max_seats: int
    reserved_count: int
    remaining_seats: int


class ScheduleDeleteResult(BaseModel):
    """Outcome of a slot delete request."""

    schedule_id: UUID
    deleted: bool
    deactivated: bool
