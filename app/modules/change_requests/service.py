"""Reschedule requests for confirmed reservations."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import ChangeRequestStatusEnum, NotificationTypeEnum, ReservationStatusEnum
from app.core.metrics import CAPACITY_REJECTIONS_TOTAL
from app.modules.audit.repository import AuditRepository
from app.modules.change_requests.models import ChangeRequest
from app.modules.change_requests.repository import PENDING_CONFLICT_MESSAGE, ChangeRequestsRepository
from app.modules.change_requests.schemas import (
    ChangeRequestAdminRead,
    ChangeRequestCreate,
    ChangeRequestDecision,
    ChangeRequestTokenCreate,
    TokenReservationRead,
)
from app.modules.identity.models import User
from app.modules.integrations.sync import ReservationSyncService, build_reservation_sync_service
from app.modules.notifications.service import (
    NotificationQueue,
    NotificationRequest,
    PostCommitNotifier,
)
from app.modules.reservations.models import Reservation
from app.modules.reservations.repository import ReservationsRepository
from app.modules.scheduling.capacity import CapacityChecker
from app.modules.scheduling.repository import SchedulingRepository
from app.shared.exceptions import (
    CapacityExceededException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from app.shared.utils import normalize_time, strip_or_none, utc_now

logger = logging.getLogger(__name__)

ALREADY_PROCESSED_MESSAGE = "Change request has already been processed"


class ChangeRequestService:
    """Create and decide reschedule requests."""

    def __init__(
        self,
        repository: ChangeRequestsRepository,
        reservations_repository: ReservationsRepository,
        scheduling_repository: SchedulingRepository,
        capacity_checker: CapacityChecker,
        audit_repository: AuditRepository,
        notifier: NotificationQueue,
        sync_service: ReservationSyncService,
    ) -> None:
        self.repository = repository
        self.reservations_repository = reservations_repository
        self.scheduling_repository = scheduling_repository
        self.capacity_checker = capacity_checker
        self.audit_repository = audit_repository
        self.notifier = notifier
        self.sync_service = sync_service

    async def create_for_owner(
        self,
        reservation_id: UUID,
        payload: ChangeRequestCreate,
        actor: User,
    ) -> ChangeRequest:
        reservation = await self.reservations_repository.get_for_update(reservation_id)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        if reservation.user_id is None or reservation.user_id != actor.id:
            raise UnauthorizedException("You can only change your own reservations")
        return await self._create(reservation, payload, actor)

    async def create_with_token(self, payload: ChangeRequestTokenCreate) -> ChangeRequest:
        reservation = await self.reservations_repository.get_by_change_token(payload.token, for_update=True)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        return await self._create(reservation, payload, None)

    async def _create(
        self,
        reservation: Reservation,
        payload: ChangeRequestCreate,
        actor: User | None,
    ) -> ChangeRequest:
        if reservation.status != ReservationStatusEnum.CONFIRMED:
            raise ValidationException("Only confirmed reservations can be changed")

        requested_time = normalize_time(payload.requested_time)
        if (
            payload.requested_date == reservation.desired_date
            and requested_time == normalize_time(reservation.desired_time)
        ):
            raise ValidationException("Requested date and time are the same as the current ones")

        if await self.repository.has_pending(reservation.id):
            raise ConflictException(PENDING_CONFLICT_MESSAGE)

        if payload.schedule_id is not None:
            await self._check_target_slot(reservation, payload, requested_time)

        change_request = await self.repository.create_change_request(
            reservation_id=reservation.id,
            original_date=reservation.desired_date,
            original_time=reservation.desired_time,
            requested_date=payload.requested_date,
            requested_time=requested_time,
            schedule_id=payload.schedule_id,
            reason=strip_or_none(payload.reason),
        )
        await self._record(change_request, actor, "created")
        return change_request

    async def _check_target_slot(self, reservation: Reservation, payload: ChangeRequestCreate, requested_time) -> None:
        schedule = await self.scheduling_repository.get_schedule_by_id(payload.schedule_id)
        if schedule is None or schedule.class_id != reservation.class_id:
            raise ValidationException("Schedule does not belong to the reserved class")
        if not schedule.is_active:
            raise ValidationException("Schedule is not available")
        if schedule.schedule_date != payload.requested_date or normalize_time(schedule.start_time) != requested_time:
            raise ValidationException("Requested date and time do not match the schedule")
        if not await self.capacity_checker.has_capacity(schedule.id, reservation.num_people):
            CAPACITY_REJECTIONS_TOTAL.inc()
            raise CapacityExceededException("Not enough seats left on the requested schedule")

    async def get_by_token(self, token: str) -> TokenReservationRead:
        reservation = await self.reservations_repository.get_by_change_token(token)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        return TokenReservationRead(
            reservation_id=reservation.id,
            class_name=reservation.studio_class.name,
            customer_name=reservation.customer_name,
            desired_date=reservation.desired_date,
            desired_time=reservation.desired_time,
            num_people=reservation.num_people,
            status=reservation.status,
            has_pending_request=await self.repository.has_pending(reservation.id),
        )

    async def _lock_pending(self, change_request_id: UUID) -> tuple[ChangeRequest, Reservation]:
        """Lock the reservation, then the request, in the order cancellation uses."""
        reservation_id = await self.repository.get_reservation_id(change_request_id)
        if reservation_id is None:
            raise NotFoundException("Change request not found")
        reservation = await self.reservations_repository.get_for_update(reservation_id)
        if reservation is None:
            raise NotFoundException("Reservation not found")

        change_request = await self.repository.get_for_update(change_request_id)
        if change_request is None:
            raise NotFoundException("Change request not found")
        if change_request.status != ChangeRequestStatusEnum.PENDING:
            raise InvalidTransitionException(ALREADY_PROCESSED_MESSAGE)
        return change_request, reservation

    async def approve(self, change_request_id: UUID, actor: User) -> ChangeRequest:
        """Move the reservation to the requested slot; its status is untouched."""
        change_request, reservation = await self._lock_pending(change_request_id)
        if reservation.status != ReservationStatusEnum.CONFIRMED:
            raise InvalidTransitionException("Only confirmed reservations can be changed")

        if change_request.schedule_id is not None and change_request.schedule_id != reservation.schedule_id:
            await self.capacity_checker.reserve_seats(change_request.schedule_id, reservation.num_people)

        await self.repository.mark_processed(change_request, ChangeRequestStatusEnum.APPROVED, utc_now())

        values: dict = {
            "desired_date": change_request.requested_date,
            "desired_time": change_request.requested_time,
        }
        if change_request.schedule_id is not None:
            values["schedule_id"] = change_request.schedule_id
        if not await self.reservations_repository.guarded_update(
            reservation,
            ReservationStatusEnum.CONFIRMED,
            **values,
        ):
            raise ConflictException("Reservation was modified by another request, please retry")

        try:
            await self.sync_service.on_rescheduled(
                reservation,
                change_request.requested_date,
                change_request.requested_time,
            )
        except Exception:
            logger.exception("Sync after rescheduling reservation %s failed", reservation.id)

        await self._record(change_request, actor, "approved")
        await self.audit_repository.create_outbox_event(
            aggregate_type="reservation",
            aggregate_id=str(reservation.id),
            event_type="reservation.rescheduled",
            payload={
                "entity": "reservation",
                "id": str(reservation.id),
                "change_type": "rescheduled",
                "desired_date": change_request.requested_date.isoformat(),
                "desired_time": change_request.requested_time.isoformat(),
            },
        )
        self._notify(change_request, reservation, NotificationTypeEnum.CHANGE_APPROVED)
        return change_request

    async def reject(self, change_request_id: UUID, actor: User, reason: str | None = None) -> ChangeRequest:
        change_request, reservation = await self._lock_pending(change_request_id)
        reason = strip_or_none(reason)
        await self.repository.mark_processed(
            change_request,
            ChangeRequestStatusEnum.REJECTED,
            utc_now(),
            reject_reason=reason,
        )
        await self._record(change_request, actor, "rejected", {"reason": reason})
        self._notify(
            change_request,
            reservation,
            NotificationTypeEnum.CHANGE_REJECTED,
            reject_reason=reason,
        )
        return change_request

    async def apply_admin_decision(
        self,
        change_request_id: UUID,
        payload: ChangeRequestDecision,
        actor: User,
    ) -> ChangeRequest:
        if payload.status == ChangeRequestStatusEnum.APPROVED:
            return await self.approve(change_request_id, actor)
        if payload.status == ChangeRequestStatusEnum.REJECTED:
            return await self.reject(change_request_id, actor, payload.reject_reason)
        raise ValidationException("Status must be 'approved' or 'rejected'")

    async def list_change_requests(
        self,
        limit: int,
        offset: int,
        status: ChangeRequestStatusEnum | None = None,
    ) -> tuple[list[ChangeRequestAdminRead], int]:
        items, total = await self.repository.list_change_requests(limit, offset, status)
        result = []
        for item in items:
            read = ChangeRequestAdminRead.model_validate(item)
            reservation = item.reservation
            if reservation is not None:
                read.customer_name = reservation.customer_name
                read.customer_phone = reservation.customer_phone
                read.num_people = reservation.num_people
                if reservation.studio_class is not None:
                    read.class_name = reservation.studio_class.name
            result.append(read)
        return result, total

    async def _record(
        self,
        change_request: ChangeRequest,
        actor: User | None,
        change_type: str,
        extra: dict | None = None,
    ) -> None:
        payload = {
            "entity": "change_request",
            "id": str(change_request.id),
            "change_type": change_type,
            "reservation_id": str(change_request.reservation_id),
        }
        if extra:
            payload.update(extra)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id if actor else None,
            action=f"change_request.{change_type}",
            entity_type="change_request",
            entity_id=str(change_request.id),
            payload=payload,
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="change_request",
            aggregate_id=str(change_request.id),
            event_type=f"change_request.{change_type}",
            payload=payload,
        )

    def _notify(
        self,
        change_request: ChangeRequest,
        reservation: Reservation,
        notification_type: NotificationTypeEnum,
        reject_reason: str | None = None,
    ) -> None:
        studio_class = reservation.studio_class
        self.notifier.enqueue(
            NotificationRequest(
                reservation_id=reservation.id,
                type=notification_type,
                recipient_phone=reservation.customer_phone,
                customer_name=reservation.customer_name,
                class_name=studio_class.name if studio_class else "",
                date=change_request.original_date,
                time=change_request.original_time,
                price=studio_class.price if studio_class else 0,
                reject_reason=reject_reason,
                requested_date=change_request.requested_date,
                requested_time=change_request.requested_time,
            ),
        )


def build_change_request_service(session: AsyncSession) -> ChangeRequestService:
    reservations_repository = ReservationsRepository(session)
    scheduling_repository = SchedulingRepository(session)
    return ChangeRequestService(
        repository=ChangeRequestsRepository(session),
        reservations_repository=reservations_repository,
        scheduling_repository=scheduling_repository,
        capacity_checker=CapacityChecker(scheduling_repository),
        audit_repository=AuditRepository(session),
        notifier=PostCommitNotifier(session),
        sync_service=build_reservation_sync_service(row_reconciler=reservations_repository),
    )


async def get_change_request_service(session: AsyncSession = Depends(get_db_session)) -> ChangeRequestService:
    """Dependency provider for change request service."""
    return build_change_request_service(session)
