"""Audit API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.enums import OutboxStatusEnum
from app.modules.audit.schemas import AuditLogRead, OutboxEventRead
from app.modules.audit.service import AuditService, get_audit_service
from app.modules.identity.service import require_admin
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/audit", tags=["audit"], dependencies=[Depends(require_admin)])


@router.get("/logs", response_model=Page[AuditLogRead])
async def list_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: AuditService = Depends(get_audit_service),
) -> Page[AuditLogRead]:
    """List audit logs."""
    items, total = await service.list_logs(
        pagination.limit,
        pagination.offset,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    serialized = [AuditLogRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/outbox", response_model=Page[OutboxEventRead])
async def list_outbox(
    status: OutboxStatusEnum | None = Query(default=OutboxStatusEnum.PENDING),
    aggregate_type: str | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: AuditService = Depends(get_audit_service),
) -> Page[OutboxEventRead]:
    """List published change events."""
    items, total = await service.list_outbox(
        pagination.limit,
        pagination.offset,
        status=status,
        aggregate_type=aggregate_type,
    )
    serialized = [OutboxEventRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/outbox/{event_id}/ack", response_model=OutboxEventRead)
async def acknowledge_outbox_event(
    event_id: UUID,
    service: AuditService = Depends(get_audit_service),
) -> OutboxEventRead:
    """Mark change event as consumed."""
    return OutboxEventRead.model_validate(await service.acknowledge(event_id))
