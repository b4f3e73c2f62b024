"""Notifications ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import NotificationChannelEnum, NotificationStatusEnum, NotificationTypeEnum, enum_values


class Notification(BaseModelMixin, Base):
    """Delivery record of one customer message about a reservation."""

    __tablename__ = "notifications"

    reservation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("reservations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[NotificationTypeEnum] = mapped_column(
        SAEnum(
            NotificationTypeEnum,
            name="notification_type_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )
    channel: Mapped[NotificationChannelEnum] = mapped_column(
        SAEnum(
            NotificationChannelEnum,
            name="notification_channel_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=NotificationChannelEnum.KAKAO,
        nullable=False,
    )
    recipient_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatusEnum] = mapped_column(
        SAEnum(
            NotificationStatusEnum,
            name="notification_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=NotificationStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    reservation = relationship("Reservation")
