"""Reservations API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import ReservationStatusEnum
from app.modules.identity.models import User
from app.modules.identity.service import get_current_user, require_admin
from app.modules.reservations.models import Reservation
from app.modules.reservations.rate_limit import enforce_reservation_rate_limit
from app.modules.reservations.schemas import (
    CancelRequest,
    CancellationDecision,
    MyReservationRead,
    ReservationAdminRead,
    ReservationAdminUpdate,
    ReservationCreate,
    ReservationRead,
)
from app.modules.reservations.service import ReservationService, get_reservation_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(tags=["reservations"])


def _admin_read(reservation: Reservation) -> ReservationAdminRead:
    read = ReservationAdminRead.model_validate(reservation)
    if reservation.studio_class is not None:
        read.class_name = reservation.studio_class.name
    return read


@router.post(
    "/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_reservation_rate_limit)],
)
async def create_reservation(
    payload: ReservationCreate,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_user),
) -> ReservationRead:
    """Book seats on a slot; the reservation starts pending."""
    reservation = await service.create_reservation(payload, current_user)
    return ReservationRead.model_validate(reservation)


@router.get("/reservations/my", response_model=Page[MyReservationRead])
async def list_my_reservations(
    pagination=Depends(get_pagination_params),
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_user),
) -> Page[MyReservationRead]:
    items, total = await service.list_my_reservations(current_user, pagination.limit, pagination.offset)
    return build_page(items, total, pagination)


@router.post("/reservations/{reservation_id}/cancel-request", response_model=ReservationRead)
async def request_cancellation(
    reservation_id: UUID,
    payload: CancelRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_user),
) -> ReservationRead:
    """Cancel a pending booking or ask the studio to cancel a confirmed one."""
    reservation = await service.request_cancellation(reservation_id, current_user, payload.reason)
    return ReservationRead.model_validate(reservation)


@router.get("/admin/reservations", response_model=Page[ReservationAdminRead])
async def list_reservations(
    status_filter: ReservationStatusEnum | None = Query(default=None, alias="status"),
    class_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    cancellation_requested: bool | None = None,
    search: str | None = Query(default=None, max_length=100),
    pagination=Depends(get_pagination_params),
    service: ReservationService = Depends(get_reservation_service),
    _admin=Depends(require_admin),
) -> Page[ReservationAdminRead]:
    items, total = await service.list_reservations(
        pagination.limit,
        pagination.offset,
        status=status_filter,
        class_id=class_id,
        date_from=date_from,
        date_to=date_to,
        cancellation_requested=cancellation_requested,
        search=search,
    )
    return build_page([_admin_read(item) for item in items], total, pagination)


@router.get("/admin/reservations/{reservation_id}", response_model=ReservationAdminRead)
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    admin: User = Depends(require_admin),
) -> ReservationAdminRead:
    return _admin_read(await service.get_reservation(reservation_id, admin))


@router.patch("/admin/reservations/{reservation_id}", response_model=ReservationAdminRead)
@router.patch("/reservations/{reservation_id}", response_model=ReservationAdminRead, include_in_schema=False)
async def update_reservation(
    reservation_id: UUID,
    payload: ReservationAdminUpdate,
    service: ReservationService = Depends(get_reservation_service),
    admin: User = Depends(require_admin),
) -> ReservationAdminRead:
    """Apply a status change or memo update."""
    reservation = await service.apply_admin_update(reservation_id, payload, admin)
    return _admin_read(reservation)


@router.post("/admin/reservations/{reservation_id}/cancellation/approve", response_model=ReservationAdminRead)
async def approve_cancellation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    admin: User = Depends(require_admin),
) -> ReservationAdminRead:
    return _admin_read(await service.approve_cancellation(reservation_id, admin))


@router.post("/admin/reservations/{reservation_id}/cancellation/reject", response_model=ReservationAdminRead)
async def reject_cancellation(
    reservation_id: UUID,
    payload: CancellationDecision,
    service: ReservationService = Depends(get_reservation_service),
    admin: User = Depends(require_admin),
) -> ReservationAdminRead:
    """Keep the reservation confirmed and tell the customer why."""
    return _admin_read(await service.reject_cancellation(reservation_id, admin, payload.reason))
