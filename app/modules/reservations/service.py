"""Reservation lifecycle: creation, status transitions and cancellation requests.

Every mutation locks the reservation row, re-validates the transition against
the freshly read status and writes through a conditional update, so two admins
acting on the same reservation cannot both apply a transition. Calendar and
sheet sync run after the status write and never undo it; customer
notifications are queued and sent once the transaction has committed.
"""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import NotificationTypeEnum, ReservationStatusEnum
from app.core.metrics import record_transition
from app.modules.audit.repository import AuditRepository
from app.modules.change_requests.repository import ChangeRequestsRepository
from app.modules.classes.repository import ClassesRepository
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import IdentityService
from app.modules.integrations.sync import ReservationSyncService, build_reservation_sync_service
from app.modules.notifications.service import (
    NotificationQueue,
    NotificationRequest,
    PostCommitNotifier,
)
from app.modules.reservations.models import Reservation
from app.modules.reservations.repository import ReservationsRepository
from app.modules.reservations.schemas import (
    LatestChangeRead,
    MyReservationRead,
    ReservationAdminUpdate,
    ReservationCreate,
)
from app.modules.reservations.transitions import ensure_transition
from app.modules.scheduling.capacity import CapacityChecker
from app.modules.scheduling.repository import SchedulingRepository
from app.shared.exceptions import (
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from app.shared.utils import generate_change_token, normalize_time, strip_or_none, utc_now

logger = logging.getLogger(__name__)

CASCADE_REJECT_REASON = "reservation was cancelled"
CANCELLATION_DECLINED_REASON = "Your cancellation request was declined."


class ReservationService:
    """Reservation state machine with named, enumerable operations."""

    def __init__(
        self,
        repository: ReservationsRepository,
        classes_repository: ClassesRepository,
        scheduling_repository: SchedulingRepository,
        capacity_checker: CapacityChecker,
        change_requests_repository: ChangeRequestsRepository,
        identity_service: IdentityService,
        audit_repository: AuditRepository,
        notifier: NotificationQueue,
        sync_service: ReservationSyncService,
    ) -> None:
        self.repository = repository
        self.classes_repository = classes_repository
        self.scheduling_repository = scheduling_repository
        self.capacity_checker = capacity_checker
        self.change_requests_repository = change_requests_repository
        self.identity_service = identity_service
        self.audit_repository = audit_repository
        self.notifier = notifier
        self.sync_service = sync_service

    # helpers

    async def _lock(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.get_for_update(reservation_id)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        return reservation

    @staticmethod
    def _ensure_owner(reservation: Reservation, actor: User) -> None:
        if reservation.user_id is None or reservation.user_id != actor.id:
            raise UnauthorizedException("You can only manage your own reservations")

    async def _apply_transition(
        self,
        reservation: Reservation,
        target: ReservationStatusEnum,
        *,
        by_admin: bool,
        **values,
    ) -> None:
        current = reservation.status
        ensure_transition(current, target, by_admin=by_admin)
        await self._guarded_update(reservation, current, status=target, **values)
        record_transition(current, target)
        logger.info("Reservation %s: %s -> %s", reservation.id, current, target)

    async def _guarded_update(
        self,
        reservation: Reservation,
        expected_status: ReservationStatusEnum,
        **values,
    ) -> None:
        if not await self.repository.guarded_update(reservation, expected_status, **values):
            raise ConflictException("Reservation was modified by another request, please retry")

    async def _record(
        self,
        reservation: Reservation,
        actor: User | None,
        change_type: str,
        extra: dict | None = None,
    ) -> None:
        payload = {
            "entity": "reservation",
            "id": str(reservation.id),
            "change_type": change_type,
            "status": str(reservation.status),
        }
        if extra:
            payload.update(extra)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id if actor else None,
            action=f"reservation.{change_type}",
            entity_type="reservation",
            entity_id=str(reservation.id),
            payload=payload,
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="reservation",
            aggregate_id=str(reservation.id),
            event_type=f"reservation.{change_type}",
            payload=payload,
        )

    def _notify(
        self,
        reservation: Reservation,
        notification_type: NotificationTypeEnum,
        **extra,
    ) -> None:
        studio_class = reservation.studio_class
        self.notifier.enqueue(
            NotificationRequest(
                reservation_id=reservation.id,
                type=notification_type,
                recipient_phone=reservation.customer_phone,
                customer_name=reservation.customer_name,
                class_name=studio_class.name if studio_class else "",
                date=reservation.desired_date,
                time=reservation.desired_time,
                price=studio_class.price if studio_class else 0,
                **extra,
            ),
        )

    # creation

    async def create_reservation(self, payload: ReservationCreate, actor: User) -> Reservation:
        """Insert a pending reservation after checking capacity under the slot lock."""
        customer_name = strip_or_none(payload.customer_name)
        customer_phone = strip_or_none(payload.customer_phone)
        depositor_name = strip_or_none(payload.depositor_name)
        if not (customer_name and customer_phone and depositor_name):
            raise ValidationException("Please fill in all required fields")

        studio_class = await self.classes_repository.get_class_by_id(payload.class_id)
        if studio_class is None or not studio_class.is_active:
            raise NotFoundException("Class not found")

        schedule = await self.scheduling_repository.get_schedule_by_id(payload.schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")
        if schedule.class_id != studio_class.id:
            raise ValidationException("Schedule does not belong to the selected class")
        desired_time = normalize_time(payload.desired_time)
        if schedule.schedule_date != payload.desired_date or normalize_time(schedule.start_time) != desired_time:
            raise ValidationException("Desired date and time do not match the schedule")

        await self.capacity_checker.reserve_seats(schedule.id, payload.num_people)

        reservation = await self.repository.create_reservation(
            user_id=actor.id,
            class_id=studio_class.id,
            schedule_id=schedule.id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            depositor_name=depositor_name,
            desired_date=payload.desired_date,
            desired_time=desired_time,
            num_people=payload.num_people,
            customer_memo=strip_or_none(payload.customer_memo),
            change_token=generate_change_token(),
        )

        await self.identity_service.fill_profile_from_booking(
            actor,
            customer_name=customer_name,
            customer_phone=customer_phone,
            depositor_name=depositor_name,
        )
        await self._record(reservation, actor, "created", {"schedule_id": str(schedule.id)})
        self._notify(reservation, NotificationTypeEnum.APPROVAL)
        return reservation

    # admin transitions

    async def approve_payment(
        self,
        reservation_id: UUID,
        actor: User,
        admin_memo: str | None = None,
    ) -> Reservation:
        """pending -> confirmed, then publish to calendar and sheet."""
        reservation = await self._lock(reservation_id)
        values: dict = {"confirmed_at": utc_now()}
        if admin_memo is not None:
            values["admin_memo"] = admin_memo
        await self._apply_transition(reservation, ReservationStatusEnum.CONFIRMED, by_admin=True, **values)

        try:
            synced = await self.sync_service.on_confirmed(reservation)
        except Exception:
            logger.exception("Sync after confirming reservation %s failed", reservation.id)
        else:
            if synced.calendar_event_id is not None or synced.sheet_row is not None:
                await self.repository.update_fields(
                    reservation,
                    google_calendar_event_id=synced.calendar_event_id,
                    google_sheets_row=synced.sheet_row,
                )

        await self._record(reservation, actor, "confirmed")
        self._notify(
            reservation,
            NotificationTypeEnum.CONFIRMATION,
            change_token=reservation.change_token,
        )
        return reservation

    async def reject(
        self,
        reservation_id: UUID,
        actor: User,
        reason: str | None,
        admin_memo: str | None = None,
    ) -> Reservation:
        """pending -> rejected; a non-blank reason is mandatory."""
        reason = strip_or_none(reason)
        if reason is None:
            raise ValidationException("Reject reason is required")

        reservation = await self._lock(reservation_id)
        values: dict = {"reject_reason": reason, "rejected_at": utc_now()}
        if admin_memo is not None:
            values["admin_memo"] = admin_memo
        await self._apply_transition(reservation, ReservationStatusEnum.REJECTED, by_admin=True, **values)

        await self._record(reservation, actor, "rejected", {"reason": reason})
        self._notify(reservation, NotificationTypeEnum.REJECTION, reject_reason=reason)
        return reservation

    async def cancel(
        self,
        reservation_id: UUID,
        actor: User,
        reason: str | None = None,
    ) -> Reservation:
        """confirmed -> cancelled by an admin."""
        reservation = await self._lock(reservation_id)
        return await self._cancel_confirmed(reservation, actor, reason=strip_or_none(reason), clear_reject_reason=False)

    async def _cancel_confirmed(
        self,
        reservation: Reservation,
        actor: User,
        *,
        reason: str | None,
        clear_reject_reason: bool,
    ) -> Reservation:
        now = utc_now()
        values: dict = {"cancelled_at": now, "cancellation_requested": False}
        if reason is not None:
            values["cancel_reason"] = reason
        if clear_reject_reason:
            values["reject_reason"] = None
        await self._apply_transition(reservation, ReservationStatusEnum.CANCELLED, by_admin=True, **values)

        rejected_ids = await self.change_requests_repository.reject_pending_for_reservation(
            reservation.id,
            CASCADE_REJECT_REASON,
            now,
        )
        for change_request_id in rejected_ids:
            await self.audit_repository.create_outbox_event(
                aggregate_type="change_request",
                aggregate_id=str(change_request_id),
                event_type="change_request.rejected",
                payload={
                    "entity": "change_request",
                    "id": str(change_request_id),
                    "change_type": "rejected",
                    "reservation_id": str(reservation.id),
                    "reason": CASCADE_REJECT_REASON,
                },
            )

        try:
            cleared = (await self.sync_service.on_cancelled(reservation)).cleared_fields()
            if cleared:
                await self.repository.update_fields(reservation, **cleared)
        except Exception:
            logger.exception("Sync after cancelling reservation %s failed", reservation.id)

        await self._record(
            reservation,
            actor,
            "cancelled",
            {"auto_rejected_change_requests": [str(item) for item in rejected_ids]},
        )
        self._notify(reservation, NotificationTypeEnum.CANCELLATION)
        return reservation

    async def approve_cancellation(self, reservation_id: UUID, actor: User) -> Reservation:
        """Accept a customer's cancellation request."""
        reservation = await self._lock(reservation_id)
        self._ensure_cancellation_requested(reservation)
        return await self._cancel_confirmed(reservation, actor, reason=None, clear_reject_reason=True)

    async def reject_cancellation(
        self,
        reservation_id: UUID,
        actor: User,
        reason: str | None = None,
    ) -> Reservation:
        """Decline a cancellation request; the reservation stays confirmed."""
        reservation = await self._lock(reservation_id)
        self._ensure_cancellation_requested(reservation)
        decline_reason = strip_or_none(reason) or CANCELLATION_DECLINED_REASON
        await self._guarded_update(
            reservation,
            ReservationStatusEnum.CONFIRMED,
            cancellation_requested=False,
            cancellation_requested_at=None,
            cancel_reason=None,
            reject_reason=decline_reason,
        )
        await self._record(reservation, actor, "cancellation_rejected", {"reason": decline_reason})
        return reservation

    @staticmethod
    def _ensure_cancellation_requested(reservation: Reservation) -> None:
        if reservation.status != ReservationStatusEnum.CONFIRMED or not reservation.cancellation_requested:
            raise InvalidTransitionException("This reservation has no pending cancellation request")

    async def update_admin_memo(self, reservation_id: UUID, actor: User, memo: str | None) -> Reservation:
        reservation = await self._lock(reservation_id)
        await self.repository.update_fields(reservation, admin_memo=memo)
        await self._record(reservation, actor, "updated", {"fields": ["admin_memo"]})
        return reservation

    async def apply_admin_update(
        self,
        reservation_id: UUID,
        payload: ReservationAdminUpdate,
        actor: User,
    ) -> Reservation:
        """Map a generic PATCH body onto the named operations."""
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationException("Nothing to update")

        target = changes.get("status")
        if target is None:
            if "cancel_reason" in changes and changes["cancel_reason"] is None:
                reservation = await self.reject_cancellation(reservation_id, actor, changes.get("reject_reason"))
                if "admin_memo" in changes:
                    await self.repository.update_fields(reservation, admin_memo=changes["admin_memo"])
                return reservation
            if "admin_memo" in changes:
                return await self.update_admin_memo(reservation_id, actor, changes["admin_memo"])
            raise ValidationException("Nothing to update")

        admin_memo = changes.get("admin_memo")
        if target == ReservationStatusEnum.CONFIRMED:
            return await self.approve_payment(reservation_id, actor, admin_memo=admin_memo)
        if target == ReservationStatusEnum.REJECTED:
            return await self.reject(reservation_id, actor, changes.get("reject_reason"), admin_memo=admin_memo)
        if target == ReservationStatusEnum.CANCELLED:
            current = await self.repository.get_reservation_by_id(reservation_id)
            if current is None:
                raise NotFoundException("Reservation not found")
            if current.status == ReservationStatusEnum.CONFIRMED and current.cancellation_requested:
                reservation = await self.approve_cancellation(reservation_id, actor)
            else:
                reservation = await self.cancel(reservation_id, actor, reason=changes.get("cancel_reason"))
            if "admin_memo" in changes:
                await self.repository.update_fields(reservation, admin_memo=admin_memo)
            return reservation

        reservation = await self._lock(reservation_id)
        ensure_transition(reservation.status, target, by_admin=True)
        return reservation

    # customer operations

    async def self_cancel(self, reservation_id: UUID, actor: User, reason: str | None = None) -> Reservation:
        """Owner cancels a pending reservation; no sync and no notification."""
        reservation = await self._lock(reservation_id)
        self._ensure_owner(reservation, actor)
        return await self._self_cancel(reservation, actor, reason)

    async def _self_cancel(self, reservation: Reservation, actor: User, reason: str | None) -> Reservation:
        await self._apply_transition(
            reservation,
            ReservationStatusEnum.CANCELLED,
            by_admin=False,
            cancelled_at=utc_now(),
            cancel_reason=strip_or_none(reason),
        )
        await self._record(reservation, actor, "cancelled", {"by": "customer"})
        return reservation

    async def request_cancellation(
        self,
        reservation_id: UUID,
        actor: User,
        reason: str | None = None,
    ) -> Reservation:
        """Cancel a pending reservation now, or flag a confirmed one for admin review."""
        reservation = await self._lock(reservation_id)
        self._ensure_owner(reservation, actor)

        if reservation.status == ReservationStatusEnum.PENDING:
            return await self._self_cancel(reservation, actor, reason)

        if reservation.status != ReservationStatusEnum.CONFIRMED:
            ensure_transition(reservation.status, ReservationStatusEnum.CANCELLED, by_admin=False)

        await self._guarded_update(
            reservation,
            ReservationStatusEnum.CONFIRMED,
            cancellation_requested=True,
            cancellation_requested_at=utc_now(),
            cancel_reason=strip_or_none(reason),
            reject_reason=None,
        )
        await self._record(reservation, actor, "cancellation_requested")
        return reservation

    # reads

    async def get_reservation(self, reservation_id: UUID, actor: User) -> Reservation:
        reservation = await self.repository.get_reservation_by_id(reservation_id)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        if not actor.is_admin:
            self._ensure_owner(reservation, actor)
        return reservation

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
        return await self.repository.list_reservations(
            limit,
            offset,
            status=status,
            class_id=class_id,
            date_from=date_from,
            date_to=date_to,
            cancellation_requested=cancellation_requested,
            search=strip_or_none(search),
        )

    async def list_my_reservations(
        self,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[MyReservationRead], int]:
        """Own reservations, newest first, with pending/latest change info."""
        items, total = await self.repository.list_for_user(actor.id, limit, offset)
        ids = [item.id for item in items]
        pending_ids = await self.change_requests_repository.pending_reservation_ids(ids)
        latest = await self.change_requests_repository.latest_processed_by_reservation(ids)

        result: list[MyReservationRead] = []
        for item in items:
            read = MyReservationRead.model_validate(item)
            latest_change = latest.get(item.id)
            result.append(
                read.model_copy(
                    update={
                        "class_name": item.studio_class.name if item.studio_class else None,
                        "price": item.studio_class.price if item.studio_class else None,
                        "duration_minutes": item.studio_class.duration_minutes if item.studio_class else None,
                        "has_pending_change": item.id in pending_ids,
                        "latest_change": LatestChangeRead.model_validate(latest_change) if latest_change else None,
                    },
                ),
            )
        return result, total


def build_reservation_service(session: AsyncSession) -> ReservationService:
    repository = ReservationsRepository(session)
    scheduling_repository = SchedulingRepository(session)
    return ReservationService(
        repository=repository,
        classes_repository=ClassesRepository(session),
        scheduling_repository=scheduling_repository,
        capacity_checker=CapacityChecker(scheduling_repository),
        change_requests_repository=ChangeRequestsRepository(session),
        identity_service=IdentityService(IdentityRepository(session)),
        audit_repository=AuditRepository(session),
        notifier=PostCommitNotifier(session),
        sync_service=build_reservation_sync_service(row_reconciler=repository),
    )


async def get_reservation_service(session: AsyncSession = Depends(get_db_session)) -> ReservationService:
    """Dependency provider for reservation service."""
    return build_reservation_service(session)
