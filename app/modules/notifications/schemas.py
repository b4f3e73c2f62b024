"""Notifications schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import NotificationChannelEnum, NotificationStatusEnum, NotificationTypeEnum


class NotificationRead(BaseModel):
    """Notification delivery record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reservation_id: UUID | None
    type: NotificationTypeEnum
    channel: NotificationChannelEnum
    recipient_phone: str
    message: str
    status: NotificationStatusEnum
    sent_at: datetime | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime
