"""Admin repository layer."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import (
    ChangeRequestStatusEnum,
    NotificationStatusEnum,
    OutboxStatusEnum,
    ReservationStatusEnum,
)
from app.modules.audit.models import OutboxEvent
from app.modules.change_requests.models import ChangeRequest
from app.modules.notifications.models import Notification
from app.modules.reservations.models import Reservation
from app.modules.scheduling.models import ClassSchedule
from app.shared.utils import utc_now


class AdminRepository:
    """Read-only aggregates for the admin dashboard."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_overview(self, today: date, now: datetime | None = None) -> dict[str, datetime | date | int]:
        reservation_counts = await self._count_reservations_by_status()

        reservations_pending = reservation_counts.get(ReservationStatusEnum.PENDING, 0)
        reservations_confirmed = reservation_counts.get(ReservationStatusEnum.CONFIRMED, 0)
        reservations_rejected = reservation_counts.get(ReservationStatusEnum.REJECTED, 0)
        reservations_cancelled = reservation_counts.get(ReservationStatusEnum.CANCELLED, 0)

        return {
            "generated_at": now or utc_now(),
            "today": today,
            "reservations_total": (
                reservations_pending + reservations_confirmed + reservations_rejected + reservations_cancelled
            ),
            "reservations_pending": reservations_pending,
            "reservations_confirmed": reservations_confirmed,
            "reservations_rejected": reservations_rejected,
            "reservations_cancelled": reservations_cancelled,
            "cancellation_requests_pending": await self._count_pending_cancellations(),
            "change_requests_pending": await self._count_pending_change_requests(),
            "notifications_failed": await self._count_notifications_by_status(NotificationStatusEnum.FAILED),
            "outbox_pending": await self._count_outbox_by_status(OutboxStatusEnum.PENDING),
            "schedules_today": await self._count_active_schedules_on(today),
        }

    async def _count_reservations_by_status(self) -> dict[ReservationStatusEnum, int]:
        stmt = select(Reservation.status, func.count(Reservation.id)).group_by(Reservation.status)
        rows = (await self.session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}

    async def _count_pending_cancellations(self) -> int:
        stmt = select(func.count(Reservation.id)).where(
            Reservation.status == ReservationStatusEnum.CONFIRMED,
            Reservation.cancellation_requested.is_(True),
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def _count_pending_change_requests(self) -> int:
        stmt = select(func.count(ChangeRequest.id)).where(ChangeRequest.status == ChangeRequestStatusEnum.PENDING)
        return int((await self.session.scalar(stmt)) or 0)

    async def _count_notifications_by_status(self, status: NotificationStatusEnum) -> int:
        stmt = select(func.count(Notification.id)).where(Notification.status == status)
        return int((await self.session.scalar(stmt)) or 0)

    async def _count_outbox_by_status(self, status: OutboxStatusEnum) -> int:
        stmt = select(func.count(OutboxEvent.id)).where(OutboxEvent.status == status)
        return int((await self.session.scalar(stmt)) or 0)

    async def _count_active_schedules_on(self, day: date) -> int:
        stmt = select(func.count(ClassSchedule.id)).where(
            ClassSchedule.schedule_date == day,
            ClassSchedule.is_active.is_(True),
        )
        return int((await self.session.scalar(stmt)) or 0)
