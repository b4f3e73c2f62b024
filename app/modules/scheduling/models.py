"""Scheduling ORM models."""

from __future__ import annotations

from datetime import date, time
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin

if TYPE_CHECKING:
    from app.modules.classes.models import StudioClass


class ClassSchedule(BaseModelMixin, Base):
    """Bookable date + start time instance of a class."""

    __tablename__ = "class_schedules"
    __table_args__ = (
        UniqueConstraint("class_id", "schedule_date", "start_time", name="uq_class_schedules_slot"),
        CheckConstraint(
            "max_participants IS NULL OR max_participants >= 1",
            name="max_participants_positive",
        ),
    )

    class_id: Mapped[UUID] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    schedule_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    studio_class: Mapped["StudioClass"] = relationship(back_populates="schedules")

    @property
    def effective_max_participants(self) -> int:
        """Slot override when set, otherwise the class default."""
        if self.max_participants is not None:
            return self.max_participants
        return self.studio_class.max_participants
