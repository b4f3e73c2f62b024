"""Scheduling business logic layer."""

from __future__ import annotations

import logging
from datetime import date, time, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.modules.classes.models import StudioClass
from app.modules.classes.repository import ClassesRepository
from app.modules.scheduling.capacity import CapacityChecker
from app.modules.scheduling.models import ClassSchedule
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import (
    RecurringScheduleCreate,
    ScheduleAvailabilityRead,
    ScheduleBulkCreate,
    ScheduleDeleteResult,
    ScheduleRead,
    ScheduleUpdate,
)
from app.shared.exceptions import ConflictException, NotFoundException, ValidationException
from app.shared.utils import local_date, normalize_time, utc_now

logger = logging.getLogger(__name__)

settings = get_settings()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return [first day of month, first day of next month)."""
    if month < 1 or month > 12:
        raise ValidationException("month must be between 1 and 12")
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def expand_weekday_pattern(payload: RecurringScheduleCreate) -> list[tuple[date, time]]:
    """Every (date, time) pair matching the weekday pattern in range."""
    weekdays = set(payload.weekdays)
    start_times = sorted({normalize_time(value) for value in payload.start_times})
    pairs: list[tuple[date, time]] = []
    day = payload.start_date
    while day <= payload.end_date:
        if day.weekday() in weekdays:
            pairs.extend((day, start_time) for start_time in start_times)
        day += timedelta(days=1)
    return pairs


class SchedulingService:
    """Class schedule management. Admin checks live in router dependencies."""

    def __init__(
        self,
        repository: SchedulingRepository,
        classes_repository: ClassesRepository,
        capacity_checker: CapacityChecker | None = None,
    ) -> None:
        self.repository = repository
        self.classes_repository = classes_repository
        self.capacity_checker = capacity_checker or CapacityChecker(repository)

    async def _get_class(self, class_id: UUID, *, include_inactive: bool) -> StudioClass:
        studio_class = await self.classes_repository.get_class_by_id(class_id)
        if studio_class is None or (not include_inactive and not studio_class.is_active):
            raise NotFoundException("Class not found")
        return studio_class

    async def _create_pairs(
        self,
        class_id: UUID,
        pairs: list[tuple[date, time]],
        max_participants: dict[tuple[date, time], int | None],
    ) -> list[ClassSchedule]:
        unique_pairs = list(dict.fromkeys(pairs))
        if len(unique_pairs) != len(pairs):
            raise ValidationException("Duplicate slots in request")

        existing = await self.repository.find_existing_slots(class_id, unique_pairs)
        if existing:
            first_date, first_time = sorted(existing)[0]
            raise ConflictException(
                f"Schedule already exists for {first_date.isoformat()} {first_time.strftime('%H:%M')}",
            )

        schedules = await self.repository.create_schedules(
            class_id,
            [(day, start, max_participants.get((day, start))) for day, start in unique_pairs],
        )
        logger.info("Created %s schedule(s) for class %s", len(schedules), class_id)
        return schedules

    async def create_schedules(self, class_id: UUID, payload: ScheduleBulkCreate) -> list[ClassSchedule]:
        """Create explicit slots; 409 when any of them already exists."""
        await self._get_class(class_id, include_inactive=True)
        pairs = [(slot.schedule_date, normalize_time(slot.start_time)) for slot in payload.slots]
        overrides = {
            (slot.schedule_date, normalize_time(slot.start_time)): slot.max_participants
            for slot in payload.slots
        }
        return await self._create_pairs(class_id, pairs, overrides)

    async def create_recurring_schedules(
        self,
        class_id: UUID,
        payload: RecurringScheduleCreate,
    ) -> list[ClassSchedule]:
        """Create slots for a weekday pattern over a date range."""
        await self._get_class(class_id, include_inactive=True)
        pairs = expand_weekday_pattern(payload)
        if not pairs:
            raise ValidationException("Pattern does not match any date in range")
        return await self._create_pairs(
            class_id,
            pairs,
            {pair: payload.max_participants for pair in pairs},
        )

    async def _with_availability(self, schedules: list[ClassSchedule]) -> list[ScheduleAvailabilityRead]:
        reserved_map = await self.repository.reserved_seats_by_schedule([item.id for item in schedules])
        result: list[ScheduleAvailabilityRead] = []
        for schedule in schedules:
            availability = await self.capacity_checker.availability(
                schedule,
                reserved=reserved_map.get(schedule.id, 0),
            )
            result.append(
                ScheduleAvailabilityRead(
                    **ScheduleRead.model_validate(schedule).model_dump(),
                    max_seats=availability.max_seats,
                    reserved_count=availability.reserved_count,
                    remaining_seats=availability.remaining_seats,
                ),
            )
        return result

    async def list_public_availability(self, class_id: UUID) -> list[ScheduleAvailabilityRead]:
        """Active slots from today on for an active class."""
        await self._get_class(class_id, include_inactive=False)
        today = local_date(utc_now(), settings.calendar_timezone)
        schedules = await self.repository.list_schedules_for_class(
            class_id,
            date_from=today,
            only_active=True,
        )
        return await self._with_availability(schedules)

    async def list_month(self, class_id: UUID, year: int, month: int) -> list[ScheduleAvailabilityRead]:
        """All slots of one month with reservation counts."""
        await self._get_class(class_id, include_inactive=True)
        date_from, date_to = month_bounds(year, month)
        schedules = await self.repository.list_schedules_for_class(
            class_id,
            date_from=date_from,
            date_to=date_to,
        )
        return await self._with_availability(schedules)

    async def update_schedule(self, schedule_id: UUID, payload: ScheduleUpdate) -> ClassSchedule:
        """Patch slot fields.

        A slot with active reservations keeps its date and time; moving onto an
        existing slot is a conflict.
        """
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationException("Nothing to update")
        if "start_time" in changes and changes["start_time"] is not None:
            changes["start_time"] = normalize_time(changes["start_time"])
        for required in ("schedule_date", "start_time", "is_active"):
            if required in changes and changes[required] is None:
                raise ValidationException(f"{required} cannot be null")

        schedule = await self.repository.lock_schedule(schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")

        new_date = changes.get("schedule_date", schedule.schedule_date)
        new_time = changes.get("start_time", schedule.start_time)
        if (new_date, new_time) != (schedule.schedule_date, schedule.start_time):
            active = await self.repository.count_active_reservations(schedule.id)
            if active > 0:
                raise ConflictException(
                    f"Cannot move a schedule with active reservations ({active})",
                )
            if await self.repository.find_existing_slots(schedule.class_id, [(new_date, new_time)]):
                raise ConflictException("Another schedule already uses this date and time")

        if "max_participants" in changes:
            new_max = changes["max_participants"] or schedule.studio_class.max_participants
            reserved = await self.repository.reserved_seats(schedule.id)
            if new_max < reserved:
                raise ValidationException(
                    f"Capacity cannot be lower than already reserved seats ({reserved})",
                )

        return await self.repository.update_schedule(schedule, **changes)

    async def delete_schedule(self, schedule_id: UUID) -> ScheduleDeleteResult:
        """Hard delete an unused slot, otherwise deactivate it."""
        schedule = await self.repository.lock_schedule(schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")

        if await self.repository.count_active_reservations(schedule.id) > 0:
            await self.repository.update_schedule(schedule, is_active=False)
            logger.info("Schedule %s deactivated; active reservations still reference it", schedule.id)
            return ScheduleDeleteResult(schedule_id=schedule.id, deleted=False, deactivated=True)

        await self.repository.delete_schedule(schedule)
        return ScheduleDeleteResult(schedule_id=schedule_id, deleted=True, deactivated=False)


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(SchedulingRepository(session), ClassesRepository(session))
