"""Change requests API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import ChangeRequestStatusEnum
from app.modules.change_requests.schemas import (
    ChangeRequestAdminRead,
    ChangeRequestCreate,
    ChangeRequestDecision,
    ChangeRequestRead,
    ChangeRequestTokenCreate,
    TokenReservationRead,
)
from app.modules.change_requests.service import ChangeRequestService, get_change_request_service
from app.modules.identity.models import User
from app.modules.identity.service import get_current_user, require_admin
from app.modules.reservations.rate_limit import enforce_reservation_rate_limit
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(tags=["change-requests"])


@router.post(
    "/reservations/{reservation_id}/change-request",
    response_model=ChangeRequestRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_change_request(
    reservation_id: UUID,
    payload: ChangeRequestCreate,
    service: ChangeRequestService = Depends(get_change_request_service),
    current_user: User = Depends(get_current_user),
) -> ChangeRequestRead:
    """Ask to move own confirmed reservation."""
    change_request = await service.create_for_owner(reservation_id, payload, current_user)
    return ChangeRequestRead.model_validate(change_request)


@router.post(
    "/change-requests",
    response_model=ChangeRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_reservation_rate_limit)],
)
async def create_change_request_with_token(
    payload: ChangeRequestTokenCreate,
    service: ChangeRequestService = Depends(get_change_request_service),
) -> ChangeRequestRead:
    """Ask to move a reservation using the link from the confirmation message."""
    return ChangeRequestRead.model_validate(await service.create_with_token(payload))


@router.get(
    "/change-requests",
    response_model=TokenReservationRead,
    dependencies=[Depends(enforce_reservation_rate_limit)],
)
async def get_reservation_by_token(
    token: str = Query(min_length=8, max_length=64),
    service: ChangeRequestService = Depends(get_change_request_service),
) -> TokenReservationRead:
    return await service.get_by_token(token)


@router.get("/admin/change-requests", response_model=Page[ChangeRequestAdminRead])
async def list_change_requests(
    status_filter: ChangeRequestStatusEnum | None = Query(default=None, alias="status"),
    pagination=Depends(get_pagination_params),
    service: ChangeRequestService = Depends(get_change_request_service),
    _admin=Depends(require_admin),
) -> Page[ChangeRequestAdminRead]:
    items, total = await service.list_change_requests(pagination.limit, pagination.offset, status_filter)
    return build_page(items, total, pagination)


@router.patch("/admin/change-requests/{change_request_id}", response_model=ChangeRequestRead)
@router.patch("/change-requests/{change_request_id}", response_model=ChangeRequestRead, include_in_schema=False)
async def decide_change_request(
    change_request_id: UUID,
    payload: ChangeRequestDecision,
    service: ChangeRequestService = Depends(get_change_request_service),
    admin: User = Depends(require_admin),
) -> ChangeRequestRead:
    """Approve or reject a pending change request."""
    change_request = await service.apply_admin_decision(change_request_id, payload, admin)
    return ChangeRequestRead.model_validate(change_request)
