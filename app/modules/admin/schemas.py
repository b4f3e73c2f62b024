"""Admin schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class AdminOverviewRead(BaseModel):
    """Dashboard snapshot of the reservation workload."""

    generated_at: datetime
    today: date

    reservations_total: int
    reservations_pending: int
    reservations_confirmed: int
    reservations_rejected: int
    reservations_cancelled: int

    cancellation_requests_pending: int
    change_requests_pending: int
    notifications_failed: int
    outbox_pending: int
    schedules_today: int
