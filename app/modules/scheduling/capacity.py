"""Slot capacity checks.

Seat counts are never cached: each check recounts live reservation rows while
the slot row is locked, so two transactions competing for the last seat are
serialized by the database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from app.core.metrics import CAPACITY_REJECTIONS_TOTAL
from app.modules.scheduling.models import ClassSchedule
from app.modules.scheduling.repository import SchedulingRepository
from app.shared.exceptions import (
    CapacityExceededException,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


def remaining_seats(effective_max: int, reserved: int) -> int:
    """Seats left in a slot, never negative."""
    return max(effective_max - reserved, 0)


def fits(remaining: int, requested: int) -> bool:
    return requested <= remaining


@dataclass(frozen=True)
class SlotAvailability:
    """Occupancy snapshot for one slot."""

    max_seats: int
    reserved_count: int
    remaining_seats: int


class CapacityChecker:
    """Concurrency-safe seat accounting for class schedules."""

    def __init__(self, scheduling_repository: SchedulingRepository) -> None:
        self.scheduling_repository = scheduling_repository

    async def _lock_active_schedule(self, schedule_id: UUID) -> ClassSchedule:
        schedule = await self.scheduling_repository.lock_schedule(schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")
        return schedule

    async def has_capacity(self, schedule_id: UUID, requested_party_size: int) -> bool:
        """Return whether `requested_party_size` seats are still free.

        The slot row stays locked until the caller's transaction ends, so a
        positive answer holds for an insert made in the same transaction.
        """
        if requested_party_size < 1:
            raise ValidationException("Party size must be a positive integer")

        schedule = await self._lock_active_schedule(schedule_id)
        if not schedule.is_active:
            return False
        reserved = await self.scheduling_repository.reserved_seats(schedule.id)
        return fits(remaining_seats(schedule.effective_max_participants, reserved), requested_party_size)

    async def reserve_seats(self, schedule_id: UUID, party_size: int) -> ClassSchedule:
        """Lock slot and assert it can take `party_size` more people."""
        if party_size < 1:
            raise ValidationException("Party size must be a positive integer")

        schedule = await self._lock_active_schedule(schedule_id)
        if not schedule.is_active:
            raise ValidationException("Schedule is not available")

        reserved = await self.scheduling_repository.reserved_seats(schedule.id)
        remaining = remaining_seats(schedule.effective_max_participants, reserved)
        if not fits(remaining, party_size):
            CAPACITY_REJECTIONS_TOTAL.inc()
            logger.info(
                "Capacity exceeded for schedule %s: requested=%s remaining=%s",
                schedule.id,
                party_size,
                remaining,
            )
            raise CapacityExceededException(
                f"Not enough seats left: requested {party_size}, remaining {remaining}",
            )
        return schedule

    async def availability(self, schedule: ClassSchedule, reserved: int | None = None) -> SlotAvailability:
        if reserved is None:
            reserved = await self.scheduling_repository.reserved_seats(schedule.id)
        max_seats = schedule.effective_max_participants
        return SlotAvailability(
            max_seats=max_seats,
            reserved_count=reserved,
            remaining_seats=remaining_seats(max_seats, reserved),
        )
