"""Notifications repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import NotificationChannelEnum, NotificationStatusEnum, NotificationTypeEnum
from app.modules.notifications.models import Notification


class NotificationsRepository:
    """DB operations for notification delivery records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record_delivery(
        self,
        *,
        reservation_id: UUID | None,
        notification_type: NotificationTypeEnum,
        channel: NotificationChannelEnum,
        recipient_phone: str,
        message: str,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
        error_message: str | None,
    ) -> Notification:
        """Insert inside a savepoint so a failed insert leaves the outer transaction usable."""
        notification = Notification(
            reservation_id=reservation_id,
            type=notification_type,
            channel=channel,
            recipient_phone=recipient_phone,
            message=message,
            status=status,
            sent_at=sent_at,
            error_message=error_message,
        )
        async with self.session.begin_nested():
            self.session.add(notification)
            await self.session.flush()
        return notification

    async def get_notification_by_id(self, notification_id: UUID) -> Notification | None:
        stmt = select(Notification).where(Notification.id == notification_id)
        return await self.session.scalar(stmt)

    async def list_notifications(
        self,
        limit: int,
        offset: int,
        status: NotificationStatusEnum | None = None,
        notification_type: NotificationTypeEnum | None = None,
        reservation_id: UUID | None = None,
    ) -> tuple[list[Notification], int]:
        base_stmt: Select[tuple[Notification]] = select(Notification).options(
            selectinload(Notification.reservation),
        )
        if status is not None:
            base_stmt = base_stmt.where(Notification.status == status)
        if notification_type is not None:
            base_stmt = base_stmt.where(Notification.type == notification_type)
        if reservation_id is not None:
            base_stmt = base_stmt.where(Notification.reservation_id == reservation_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def mark_sent(
        self,
        notification: Notification,
        channel: NotificationChannelEnum,
        sent_at: datetime,
    ) -> Notification:
        notification.channel = channel
        notification.status = NotificationStatusEnum.SENT
        notification.sent_at = sent_at
        notification.error_message = None
        await self.session.flush()
        return notification

    async def mark_failed(self, notification: Notification, error_message: str) -> Notification:
        notification.status = NotificationStatusEnum.FAILED
        notification.error_message = error_message
        await self.session.flush()
        return notification
