"""Notification dispatch: kakao first, SMS fallback, delivery journal."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, time
from functools import partial
from typing import Protocol
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import after_commit, get_db_session, transaction
from app.core.enums import NotificationChannelEnum, NotificationStatusEnum, NotificationTypeEnum
from app.core.metrics import NOTIFICATION_DELIVERIES_TOTAL
from app.modules.notifications.channels import (
    AligoKakaoChannel,
    AligoSmsChannel,
    ChannelResult,
    MessageChannel,
)
from app.modules.notifications.models import Notification
from app.modules.notifications.repository import NotificationsRepository
from app.modules.notifications.templates import (
    TemplateContext,
    build_change_link,
    render_message,
    template_code_for,
)
from app.shared.exceptions import NotFoundException
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRequest:
    reservation_id: UUID | None
    type: NotificationTypeEnum
    recipient_phone: str
    customer_name: str
    class_name: str
    date: date
    time: time
    price: int
    reject_reason: str | None = None
    requested_date: date | None = None
    requested_time: time | None = None
    change_token: str | None = None


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    channel: NotificationChannelEnum
    error: str | None = None


class NotificationDispatcher:
    """Delivers customer notifications. Never raises to the caller."""

    def __init__(
        self,
        repository: NotificationsRepository,
        kakao: MessageChannel,
        sms: MessageChannel,
        settings: Settings | None = None,
    ) -> None:
        self.repository = repository
        self.kakao = kakao
        self.sms = sms
        self.settings = settings or get_settings()

    def render(self, request: NotificationRequest) -> str:
        context = TemplateContext(
            store_name=self.settings.store_name,
            customer_name=request.customer_name,
            class_name=request.class_name,
            date=request.date,
            time=request.time,
            price=request.price,
            reject_reason=request.reject_reason,
            bank_info=self.settings.bank_info,
            deposit_deadline_hours=self.settings.deposit_deadline_hours,
            change_link=build_change_link(self.settings.public_base_url, request.change_token),
            requested_date=request.requested_date,
            requested_time=request.requested_time,
        )
        return render_message(request.type, context)

    async def _deliver(
        self,
        recipient_phone: str,
        message: str,
        template_code: str,
    ) -> tuple[NotificationChannelEnum | None, ChannelResult, ChannelResult | None]:
        kakao_result = await self.kakao.send(recipient_phone, message, template_code)
        if kakao_result.success:
            return NotificationChannelEnum.KAKAO, kakao_result, None

        logger.warning("Kakao delivery failed (%s); falling back to SMS", kakao_result.error)
        sms_result = await self.sms.send(recipient_phone, message, template_code)
        if sms_result.success:
            return NotificationChannelEnum.SMS, kakao_result, sms_result
        return None, kakao_result, sms_result

    async def dispatch(self, request: NotificationRequest) -> DispatchResult:
        """Render, send and journal one notification."""
        if not self.settings.notifications_enabled:
            return DispatchResult(success=True, channel=NotificationChannelEnum.KAKAO)

        message = self.render(request)
        channel, kakao_result, sms_result = await self._deliver(
            request.recipient_phone,
            message,
            template_code_for(request.type),
        )

        if channel is not None:
            NOTIFICATION_DELIVERIES_TOTAL.labels(type=request.type, channel=channel, status="sent").inc()
            await self._record(
                request,
                channel=channel,
                message=message,
                status=NotificationStatusEnum.SENT,
                error_message=None,
            )
            return DispatchResult(success=True, channel=channel)

        error = f"kakao: {kakao_result.error} / SMS: {sms_result.error if sms_result else None}"
        NOTIFICATION_DELIVERIES_TOTAL.labels(
            type=request.type,
            channel=NotificationChannelEnum.KAKAO,
            status="failed",
        ).inc()
        logger.error("Notification %s for reservation %s failed: %s", request.type, request.reservation_id, error)
        await self._record(
            request,
            channel=NotificationChannelEnum.KAKAO,
            message=message,
            status=NotificationStatusEnum.FAILED,
            error_message=error,
        )
        return DispatchResult(success=False, channel=NotificationChannelEnum.KAKAO, error=error)

    async def _record(
        self,
        request: NotificationRequest,
        *,
        channel: NotificationChannelEnum,
        message: str,
        status: NotificationStatusEnum,
        error_message: str | None,
    ) -> None:
        try:
            await self.repository.record_delivery(
                reservation_id=request.reservation_id,
                notification_type=request.type,
                channel=channel,
                recipient_phone=request.recipient_phone,
                message=message,
                status=status,
                sent_at=utc_now() if status == NotificationStatusEnum.SENT else None,
                error_message=error_message,
            )
        except SQLAlchemyError:
            logger.exception("Failed to record notification for reservation %s", request.reservation_id)

    async def resend(self, notification_id: UUID) -> Notification:
        """Send a stored message again and update the same row."""
        notification = await self.repository.get_notification_by_id(notification_id)
        if notification is None:
            raise NotFoundException("Notification not found")

        channel, kakao_result, sms_result = await self._deliver(
            notification.recipient_phone,
            notification.message,
            template_code_for(notification.type),
        )
        if channel is not None:
            NOTIFICATION_DELIVERIES_TOTAL.labels(type=notification.type, channel=channel, status="sent").inc()
            return await self.repository.mark_sent(notification, channel, utc_now())

        error = f"kakao: {kakao_result.error} / SMS: {sms_result.error if sms_result else None}"
        NOTIFICATION_DELIVERIES_TOTAL.labels(
            type=notification.type,
            channel=NotificationChannelEnum.KAKAO,
            status="failed",
        ).inc()
        logger.warning("Resend of notification %s failed: %s", notification.id, error)
        return await self.repository.mark_failed(notification, error)

    async def list_notifications(
        self,
        limit: int,
        offset: int,
        status: NotificationStatusEnum | None = None,
        notification_type: NotificationTypeEnum | None = None,
        reservation_id: UUID | None = None,
    ) -> tuple[list[Notification], int]:
        return await self.repository.list_notifications(
            limit=limit,
            offset=offset,
            status=status,
            notification_type=notification_type,
            reservation_id=reservation_id,
        )


def build_notification_dispatcher(session: AsyncSession, settings: Settings | None = None) -> NotificationDispatcher:
    """Dispatcher wired to Aligo channels from settings."""
    settings = settings or get_settings()
    kakao = AligoKakaoChannel(
        api_key=settings.aligo_api_key,
        user_id=settings.aligo_user_id,
        sender_key=settings.aligo_sender_key,
        sender_phone=settings.aligo_sender_phone,
        url=settings.aligo_alimtalk_url,
        subject=f"{settings.store_name} notice",
        timeout_seconds=settings.http_timeout_seconds,
    )
    sms = AligoSmsChannel(
        api_key=settings.aligo_api_key,
        user_id=settings.aligo_user_id,
        sender_phone=settings.aligo_sender_phone,
        url=settings.aligo_sms_url,
        timeout_seconds=settings.http_timeout_seconds,
    )
    return NotificationDispatcher(NotificationsRepository(session), kakao, sms, settings)


async def get_notification_dispatcher(session: AsyncSession = Depends(get_db_session)) -> NotificationDispatcher:
    """Dependency provider for notification dispatcher."""
    return build_notification_dispatcher(session)


class NotificationQueue(Protocol):
    def enqueue(self, request: NotificationRequest) -> None:
        """Schedule `request` for delivery; never sends inline."""


async def send_notification(request: NotificationRequest) -> DispatchResult:
    """Deliver one notification in its own transaction."""
    async with transaction() as session:
        result = await build_notification_dispatcher(session).dispatch(request)
    if not result.success:
        logger.warning(
            "Notification %s for reservation %s not delivered: %s",
            request.type,
            request.reservation_id,
            result.error,
        )
    return result


class PostCommitNotifier:
    """Holds notifications until the request transaction commits.

    Sending starts after the session is closed, outside every row lock it took.
    """

    def __init__(
        self,
        session: AsyncSession,
        send: Callable[[NotificationRequest], Awaitable[DispatchResult]] = send_notification,
    ) -> None:
        self.session = session
        self._send = send

    def enqueue(self, request: NotificationRequest) -> None:
        after_commit(self.session, partial(self._send, request))
