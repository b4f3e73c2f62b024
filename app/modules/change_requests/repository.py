"""Change request repository layer."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import ChangeRequestStatusEnum
from app.modules.change_requests.models import ChangeRequest
from app.modules.reservations.models import Reservation
from app.shared.exceptions import ConflictException, ValidationException

PENDING_CONFLICT_MESSAGE = "A pending change request already exists for this reservation"
ONE_PENDING_INDEX = "uq_change_requests_one_pending_per_reservation"
SCHEDULE_FK = "fk_change_requests_schedule_id_class_schedules"


def _violated_constraint(exc: IntegrityError) -> str | None:
    """Constraint name reported by asyncpg, if any."""
    cause = getattr(exc.orig, "__cause__", None)
    return getattr(cause, "constraint_name", None) or getattr(exc.orig, "constraint_name", None)


class ChangeRequestsRepository:
    """DB operations for change requests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_change_request(
        self,
        *,
        reservation_id: UUID,
        original_date: date,
        original_time: time,
        requested_date: date,
        requested_time: time,
        schedule_id: UUID | None,
        reason: str | None,
    ) -> ChangeRequest:
        """Insert a pending request; the partial unique index turns a race into 409."""
        change_request = ChangeRequest(
            reservation_id=reservation_id,
            original_date=original_date,
            original_time=original_time,
            requested_date=requested_date,
            requested_time=requested_time,
            schedule_id=schedule_id,
            reason=reason,
            status=ChangeRequestStatusEnum.PENDING,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(change_request)
                await self.session.flush()
        except IntegrityError as exc:
            constraint = _violated_constraint(exc)
            if constraint == ONE_PENDING_INDEX:
                raise ConflictException(PENDING_CONFLICT_MESSAGE) from exc
            if constraint == SCHEDULE_FK:
                raise ValidationException("Requested schedule no longer exists") from exc
            raise
        return change_request

    async def get_reservation_id(self, change_request_id: UUID) -> UUID | None:
        """Unlocked read; callers lock the reservation before the request row."""
        stmt = select(ChangeRequest.reservation_id).where(ChangeRequest.id == change_request_id)
        return await self.session.scalar(stmt)

    async def get_for_update(self, change_request_id: UUID) -> ChangeRequest | None:
        stmt = (
            select(ChangeRequest)
            .options(selectinload(ChangeRequest.reservation).selectinload(Reservation.studio_class))
            .where(ChangeRequest.id == change_request_id)
            .with_for_update(of=ChangeRequest)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def has_pending(self, reservation_id: UUID) -> bool:
        stmt = select(func.count()).where(
            ChangeRequest.reservation_id == reservation_id,
            ChangeRequest.status == ChangeRequestStatusEnum.PENDING,
        )
        return int((await self.session.scalar(stmt)) or 0) > 0

    async def mark_processed(
        self,
        change_request: ChangeRequest,
        status: ChangeRequestStatusEnum,
        processed_at: datetime,
        reject_reason: str | None = None,
    ) -> ChangeRequest:
        change_request.status = status
        change_request.processed_at = processed_at
        change_request.reject_reason = reject_reason
        await self.session.flush()
        return change_request

    async def reject_pending_for_reservation(
        self,
        reservation_id: UUID,
        reason: str,
        processed_at: datetime,
    ) -> list[UUID]:
        """Force every pending request of a reservation to rejected in one statement."""
        stmt = (
            update(ChangeRequest)
            .where(
                ChangeRequest.reservation_id == reservation_id,
                ChangeRequest.status == ChangeRequestStatusEnum.PENDING,
            )
            .values(
                status=ChangeRequestStatusEnum.REJECTED,
                reject_reason=reason,
                processed_at=processed_at,
            )
            .returning(ChangeRequest.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def pending_reservation_ids(self, reservation_ids: list[UUID]) -> set[UUID]:
        if not reservation_ids:
            return set()
        stmt = select(ChangeRequest.reservation_id).where(
            ChangeRequest.reservation_id.in_(reservation_ids),
            ChangeRequest.status == ChangeRequestStatusEnum.PENDING,
        )
        return set((await self.session.scalars(stmt)).all())

    async def latest_processed_by_reservation(self, reservation_ids: list[UUID]) -> dict[UUID, ChangeRequest]:
        if not reservation_ids:
            return {}
        stmt = (
            select(ChangeRequest)
            .where(
                ChangeRequest.reservation_id.in_(reservation_ids),
                ChangeRequest.status != ChangeRequestStatusEnum.PENDING,
            )
            .order_by(ChangeRequest.processed_at.desc().nulls_last())
        )
        latest: dict[UUID, ChangeRequest] = {}
        for item in (await self.session.scalars(stmt)).all():
            latest.setdefault(item.reservation_id, item)
        return latest

    async def list_change_requests(
        self,
        limit: int,
        offset: int,
        status: ChangeRequestStatusEnum | None = None,
    ) -> tuple[list[ChangeRequest], int]:
        base_stmt: Select[tuple[ChangeRequest]] = select(ChangeRequest).options(
            selectinload(ChangeRequest.reservation).selectinload(Reservation.studio_class),
        )
        if status is not None:
            base_stmt = base_stmt.where(ChangeRequest.status == status)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(ChangeRequest.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total
