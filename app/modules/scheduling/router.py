"""Scheduling API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.modules.identity.service import require_admin
from app.modules.scheduling.schemas import (
    RecurringScheduleCreate,
    ScheduleAvailabilityRead,
    ScheduleBulkCreate,
    ScheduleDeleteResult,
    ScheduleRead,
    ScheduleUpdate,
)
from app.modules.scheduling.service import SchedulingService, get_scheduling_service

router = APIRouter(tags=["scheduling"])


@router.get("/classes/{class_id}/schedules", response_model=list[ScheduleAvailabilityRead])
async def list_class_availability(
    class_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[ScheduleAvailabilityRead]:
    """Bookable slots from today with remaining seats."""
    return await service.list_public_availability(class_id)


@router.get("/admin/classes/{class_id}/schedules", response_model=list[ScheduleAvailabilityRead])
async def list_class_schedules_for_month(
    class_id: UUID,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    service: SchedulingService = Depends(get_scheduling_service),
    _admin=Depends(require_admin),
) -> list[ScheduleAvailabilityRead]:
    return await service.list_month(class_id, year, month)


@router.post(
    "/admin/classes/{class_id}/schedules",
    response_model=list[ScheduleRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_schedules(
    class_id: UUID,
    payload: ScheduleBulkCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    _admin=Depends(require_admin),
) -> list[ScheduleRead]:
    """Create one or more slots."""
    schedules = await service.create_schedules(class_id, payload)
    return [ScheduleRead.model_validate(item) for item in schedules]


@router.post(
    "/admin/classes/{class_id}/schedules/recurring",
    response_model=list[ScheduleRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_recurring_schedules(
    class_id: UUID,
    payload: RecurringScheduleCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    _admin=Depends(require_admin),
) -> list[ScheduleRead]:
    """Create slots from a weekday pattern."""
    schedules = await service.create_recurring_schedules(class_id, payload)
    return [ScheduleRead.model_validate(item) for item in schedules]


@router.patch("/admin/schedules/{schedule_id}", response_model=ScheduleRead)
async def update_schedule(
    schedule_id: UUID,
    payload: ScheduleUpdate,
    service: SchedulingService = Depends(get_scheduling_service),
    _admin=Depends(require_admin),
) -> ScheduleRead:
    return ScheduleRead.model_validate(await service.update_schedule(schedule_id, payload))


@router.delete("/admin/schedules/{schedule_id}", response_model=ScheduleDeleteResult)
async def delete_schedule(
    schedule_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    _admin=Depends(require_admin),
) -> ScheduleDeleteResult:
    """Delete slot, or deactivate it while active reservations reference it."""
    return await service.delete_schedule(schedule_id)
