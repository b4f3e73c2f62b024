"""Reservation schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import ChangeRequestStatusEnum, ConfirmedSubstateEnum, ReservationStatusEnum


class ReservationCreate(BaseModel):
    """Customer booking form."""

    class_id: UUID
    schedule_id: UUID
    customer_name: str = Field(max_length=100)
    customer_phone: str = Field(max_length=32)
    depositor_name: str = Field(max_length=100)
    desired_date: date
    desired_time: time
    num_people: int = Field(default=1, ge=1, le=100)
    customer_memo: str | None = Field(default=None, max_length=2000)


class ReservationAdminUpdate(BaseModel):
    """Admin PATCH body; mapped onto a named lifecycle operation."""

    status: ReservationStatusEnum | None = None
    admin_memo: str | None = None
    reject_reason: str | None = None
    cancel_reason: str | None = None


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class CancellationDecision(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ReservationRead(BaseModel):
    """Reservation response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    class_id: UUID
    schedule_id: UUID | None
    customer_name: str
    customer_phone: str
    depositor_name: str | None
    desired_date: date
    desired_time: time
    num_people: int
    customer_memo: str | None
    status: ReservationStatusEnum
    confirmed_substate: ConfirmedSubstateEnum | None
    cancellation_requested: bool
    admin_memo: str | None
    reject_reason: str | None
    cancel_reason: str | None
    confirmed_at: datetime | None
    rejected_at: datetime | None
    cancelled_at: datetime | None
    cancellation_requested_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ReservationAdminRead(ReservationRead):
    """Admin view including sync artifacts and the change token."""

    class_name: str | None = None
    change_token: str
    google_calendar_event_id: str | None
    google_sheets_row: int | None


class LatestChangeRead(BaseModel):
    """Most recent processed change request of a reservation."""

    model_config = ConfigDict(from_attributes=True)

    status: ChangeRequestStatusEnum
    original_date: date
    original_time: time
    requested_date: date
    requested_time: time
    reject_reason: str | None
    processed_at: datetime | None


class MyReservationRead(ReservationRead):
    """Customer's own reservation with change-request summary."""

    class_name: str | None = None
    price: int | None = None
    duration_minutes: int | None = None
    has_pending_change: bool = False
    latest_change: LatestChangeRead | None = None
