"""Audit business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import OutboxStatusEnum
from app.modules.audit.models import AuditLog, OutboxEvent
from app.modules.audit.repository import AuditRepository
from app.shared.exceptions import NotFoundException
from app.shared.utils import utc_now


class AuditService:
    """Read side of the audit journal and the change feed."""

    def __init__(self, repository: AuditRepository) -> None:
        self.repository = repository

    async def list_logs(
        self,
        limit: int,
        offset: int,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> tuple[list[AuditLog], int]:
        return await self.repository.list_audit_logs(
            limit=limit,
            offset=offset,
            entity_type=entity_type,
            entity_id=entity_id,
        )

    async def list_outbox(
        self,
        limit: int,
        offset: int,
        status: OutboxStatusEnum | None = None,
        aggregate_type: str | None = None,
    ) -> tuple[list[OutboxEvent], int]:
        """Oldest first, so subscribers replay changes in commit order."""
        return await self.repository.list_outbox(
            limit=limit,
            offset=offset,
            status=status,
            aggregate_type=aggregate_type,
        )

    async def acknowledge(self, event_id: UUID) -> OutboxEvent:
        """Mark change event consumed. Acknowledging twice is a no-op."""
        event = await self.repository.get_outbox_event(event_id)
        if event is None:
            raise NotFoundException("Outbox event not found")
        if event.status == OutboxStatusEnum.PROCESSED:
            return event
        return await self.repository.mark_outbox_processed(event, utc_now())


async def get_audit_service(session: AsyncSession = Depends(get_db_session)) -> AuditService:
    """Dependency provider for audit service."""
    return AuditService(AuditRepository(session))
