"""Change request schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import ChangeRequestStatusEnum, ReservationStatusEnum


class ChangeRequestCreate(BaseModel):
    """Owner's request to move a confirmed reservation."""

    requested_date: date
    requested_time: time
    schedule_id: UUID | None = None
    reason: str | None = Field(default=None, max_length=2000)


class ChangeRequestTokenCreate(ChangeRequestCreate):
    """Same request made through the change link sent to the customer."""

    token: str = Field(min_length=8, max_length=64)


class ChangeRequestDecision(BaseModel):
    """Admin decision; only approved and rejected are accepted."""

    status: ChangeRequestStatusEnum
    reject_reason: str | None = Field(default=None, max_length=2000)


class ChangeRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reservation_id: UUID
    schedule_id: UUID | None
    original_date: date
    original_time: time
    requested_date: date
    requested_time: time
    reason: str | None
    status: ChangeRequestStatusEnum
    reject_reason: str | None
    processed_at: datetime | None
    created_at: datetime


class ChangeRequestAdminRead(ChangeRequestRead):
    """Change request with the reservation details admins need to decide."""

    customer_name: str | None = None
    customer_phone: str | None = None
    class_name: str | None = None
    num_people: int | None = None


class TokenReservationRead(BaseModel):
    """Reservation summary shown on the change-link page."""

    reservation_id: UUID
    class_name: str
    customer_name: str
    desired_date: date
    desired_time: time
    num_people: int
    status: ReservationStatusEnum
    has_pending_request: bool
