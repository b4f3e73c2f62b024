"""Change request ORM models."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, Index, Text, Time, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import ChangeRequestStatusEnum, enum_values

if TYPE_CHECKING:
    from app.modules.reservations.models import Reservation
    from app.modules.scheduling.models import ClassSchedule


class ChangeRequest(BaseModelMixin, Base):
    """Customer request to move a confirmed reservation to another date/time."""

    __tablename__ = "change_requests"
    __table_args__ = (
        Index(
            "uq_change_requests_one_pending_per_reservation",
            "reservation_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )

    reservation_id: Mapped[UUID] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_time: Mapped[time] = mapped_column(Time, nullable=False)
    schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("class_schedules.id", ondelete="SET NULL"),
        nullable=True,
    )
    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    requested_time: Mapped[time] = mapped_column(Time, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ChangeRequestStatusEnum] = mapped_column(
        SAEnum(
            ChangeRequestStatusEnum,
            name="change_request_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        default=ChangeRequestStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    reject_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reservation: Mapped["Reservation"] = relationship(back_populates="change_requests")
    schedule: Mapped["ClassSchedule | None"] = relationship()
