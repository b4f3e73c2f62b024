"""Notifications API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.enums import NotificationStatusEnum, NotificationTypeEnum
from app.modules.identity.service import require_admin
from app.modules.notifications.schemas import NotificationRead
from app.modules.notifications.service import NotificationDispatcher, get_notification_dispatcher
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/admin/notifications", tags=["notifications"], dependencies=[Depends(require_admin)])


@router.get("", response_model=Page[NotificationRead])
async def list_notifications(
    status: NotificationStatusEnum | None = Query(default=None),
    type: NotificationTypeEnum | None = Query(default=None),
    reservation_id: UUID | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> Page[NotificationRead]:
    """List notification delivery records, newest first."""
    items, total = await dispatcher.list_notifications(
        pagination.limit,
        pagination.offset,
        status=status,
        notification_type=type,
        reservation_id=reservation_id,
    )
    serialized = [NotificationRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/{notification_id}/resend", response_model=NotificationRead)
async def resend_notification(
    notification_id: UUID,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> NotificationRead:
    """Send a stored message again (kakao, then SMS)."""
    return NotificationRead.model_validate(await dispatcher.resend(notification_id))
