"""Scheduling repository layer."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, time
from uuid import UUID

from sqlalchemy import delete, func, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import ReservationStatusEnum
from app.modules.reservations.models import Reservation
from app.modules.scheduling.models import ClassSchedule

ACTIVE_RESERVATION_STATUSES = (ReservationStatusEnum.PENDING, ReservationStatusEnum.CONFIRMED)


class SchedulingRepository:
    """DB access for class schedule slots and their live occupancy."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_schedules(
        self,
        class_id: UUID,
        slots: Iterable[tuple[date, time, int | None]],
    ) -> list[ClassSchedule]:
        schedules = [
            ClassSchedule(
                class_id=class_id,
                schedule_date=schedule_date,
                start_time=start_time,
                max_participants=max_participants,
                is_active=True,
            )
            for schedule_date, start_time, max_participants in slots
        ]
        self.session.add_all(schedules)
        await self.session.flush()
        return schedules

    async def find_existing_slots(
        self,
        class_id: UUID,
        pairs: list[tuple[date, time]],
    ) -> list[tuple[date, time]]:
        if not pairs:
            return []
        stmt = select(ClassSchedule.schedule_date, ClassSchedule.start_time).where(
            ClassSchedule.class_id == class_id,
            tuple_(ClassSchedule.schedule_date, ClassSchedule.start_time).in_(pairs),
        )
        return [(row[0], row[1]) for row in (await self.session.execute(stmt)).all()]

    async def get_schedule_by_id(self, schedule_id: UUID) -> ClassSchedule | None:
        stmt = (
            select(ClassSchedule)
            .options(selectinload(ClassSchedule.studio_class))
            .where(ClassSchedule.id == schedule_id)
        )
        return await self.session.scalar(stmt)

    async def lock_schedule(self, schedule_id: UUID) -> ClassSchedule | None:
        """Load slot with a row lock held until the current transaction ends.

        Every booking path for the same slot takes this lock before counting
        seats, which serializes concurrent check-and-insert sequences.
        """
        stmt = (
            select(ClassSchedule)
            .options(selectinload(ClassSchedule.studio_class))
            .where(ClassSchedule.id == schedule_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def reserved_seats(self, schedule_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(Reservation.num_people), 0)).where(
            Reservation.schedule_id == schedule_id,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def reserved_seats_by_schedule(self, schedule_ids: list[UUID]) -> dict[UUID, int]:
        if not schedule_ids:
            return {}
        stmt = (
            select(Reservation.schedule_id, func.sum(Reservation.num_people))
            .where(
                Reservation.schedule_id.in_(schedule_ids),
                Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            )
            .group_by(Reservation.schedule_id)
        )
        rows = (await self.session.execute(stmt)).all()
        return {schedule_id: int(total or 0) for schedule_id, total in rows}

    async def count_active_reservations(self, schedule_id: UUID) -> int:
        stmt = select(func.count()).where(
            Reservation.schedule_id == schedule_id,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def list_schedules_for_class(
        self,
        class_id: UUID,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        only_active: bool = False,
    ) -> list[ClassSchedule]:
        stmt = (
            select(ClassSchedule)
            .options(selectinload(ClassSchedule.studio_class))
            .where(ClassSchedule.class_id == class_id)
        )
        if date_from is not None:
            stmt = stmt.where(ClassSchedule.schedule_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(ClassSchedule.schedule_date < date_to)
        if only_active:
            stmt = stmt.where(ClassSchedule.is_active.is_(True))
        stmt = stmt.order_by(ClassSchedule.schedule_date.asc(), ClassSchedule.start_time.asc())
        return (await self.session.scalars(stmt)).all()

    async def update_schedule(self, schedule: ClassSchedule, **fields) -> ClassSchedule:
        for name, value in fields.items():
            setattr(schedule, name, value)
        await self.session.flush()
        return schedule

    async def delete_schedule(self, schedule: ClassSchedule) -> None:
        await self.session.execute(delete(ClassSchedule).where(ClassSchedule.id == schedule.id))
        await self.session.flush()
