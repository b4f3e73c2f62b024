"""Reservation ORM models."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import ConfirmedSubstateEnum, ReservationStatusEnum, enum_values

if TYPE_CHECKING:
    from app.modules.change_requests.models import ChangeRequest
    from app.modules.classes.models import StudioClass
    from app.modules.identity.models import User
    from app.modules.scheduling.models import ClassSchedule


class Reservation(BaseModelMixin, Base):
    """Customer booking of a class slot."""

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("num_people >= 1", name="num_people_positive"),
        CheckConstraint(
            "cancellation_requested = false OR status = 'confirmed'",
            name="cancellation_requested_only_when_confirmed",
        ),
    )

    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    class_id: Mapped[UUID] = mapped_column(ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("class_schedules.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    depositor_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    desired_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    desired_time: Mapped[time] = mapped_column(Time, nullable=False)
    num_people: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    customer_memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ReservationStatusEnum] = mapped_column(
        SAEnum(
            ReservationStatusEnum,
            name="reservation_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=ReservationStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    admin_memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    reject_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    change_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    google_calendar_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_sheets_row: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User | None"] = relationship(back_populates="reservations")
    studio_class: Mapped["StudioClass"] = relationship()
    schedule: Mapped["ClassSchedule | None"] = relationship()
    change_requests: Mapped[list["ChangeRequest"]] = relationship(
        back_populates="reservation",
        order_by="ChangeRequest.created_at",
    )

    @property
    def confirmed_substate(self) -> ConfirmedSubstateEnum | None:
        """Cancellation sub-state; None unless confirmed."""
        if self.status != ReservationStatusEnum.CONFIRMED:
            return None
        if self.cancellation_requested:
            return ConfirmedSubstateEnum.CANCEL_REQUESTED
        return ConfirmedSubstateEnum.NORMAL
