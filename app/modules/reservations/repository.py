"""Reservation repository layer."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.core.enums import ReservationStatusEnum
from app.modules.reservations.models import Reservation


class ReservationsRepository:
    """DB operations for reservations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _with_relations(self) -> Select[tuple[Reservation]]:
        return select(Reservation).options(
            selectinload(Reservation.studio_class),
            selectinload(Reservation.schedule),
        )

    async def create_reservation(self, **fields) -> Reservation:
        reservation = Reservation(status=ReservationStatusEnum.PENDING, **fields)
        self.session.add(reservation)
        await self.session.flush()
        await self.session.refresh(reservation, attribute_names=["studio_class", "schedule"])
        return reservation

    async def get_reservation_by_id(self, reservation_id: UUID) -> Reservation | None:
        stmt = self._with_relations().where(Reservation.id == reservation_id)
        return await self.session.scalar(stmt)

    async def get_for_update(self, reservation_id: UUID) -> Reservation | None:
        """Load with a row lock so status checks see the committed state."""
        stmt = (
            self._with_relations()
            .where(Reservation.id == reservation_id)
            .with_for_update(of=Reservation)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_by_change_token(self, change_token: str, *, for_update: bool = False) -> Reservation | None:
        stmt = self._with_relations().where(Reservation.change_token == change_token)
        if for_update:
            stmt = stmt.with_for_update(of=Reservation).execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    async def guarded_update(
        self,
        reservation: Reservation,
        expected_status: ReservationStatusEnum,
        **values,
    ) -> bool:
        """Conditional write: applies only while status still equals `expected_status`."""
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation.id, Reservation.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        for name, value in values.items():
            set_committed_value(reservation, name, value)
        return True

    async def update_fields(self, reservation: Reservation, **fields) -> Reservation:
        for name, value in fields.items():
            setattr(reservation, name, value)
        await self.session.flush()
        return reservation

    async def shift_sheet_rows_after(self, deleted_row: int) -> None:
        """Renumber stored sheet rows below a deleted row, inside a savepoint."""
        async with self.session.begin_nested():
            await self.session.execute(
                update(Reservation)
                .where(Reservation.google_sheets_row > deleted_row)
                .values(google_sheets_row=Reservation.google_sheets_row - 1)
                .execution_options(synchronize_session="fetch"),
            )

    async def list_reservations(
        self,
        limit: int,
        offset: int,
        *,
        status: ReservationStatusEnum | None = None,
        class_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        cancellation_requested: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[Reservation], int]:
        base_stmt = self._with_relations()
        if status is not None:
            base_stmt = base_stmt.where(Reservation.status == status)
        if class_id is not None:
            base_stmt = base_stmt.where(Reservation.class_id == class_id)
        if date_from is not None:
            base_stmt = base_stmt.where(Reservation.desired_date >= date_from)
        if date_to is not None:
            base_stmt = base_stmt.where(Reservation.desired_date <= date_to)
        if cancellation_requested is not None:
            base_stmt = base_stmt.where(Reservation.cancellation_requested.is_(cancellation_requested))
        if search:
            pattern = f"%{search}%"
            base_stmt = base_stmt.where(
                Reservation.customer_name.ilike(pattern) | Reservation.customer_phone.ilike(pattern),
            )

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Reservation.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_for_user(self, user_id: UUID, limit: int, offset: int) -> tuple[list[Reservation], int]:
        base_stmt = self._with_relations().where(Reservation.user_id == user_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Reservation.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total
