"""Admin API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.modules.admin.schemas import AdminOverviewRead
from app.modules.admin.service import AdminService, get_admin_service
from app.modules.identity.service import require_admin

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/overview", response_model=AdminOverviewRead)
async def get_overview(service: AdminService = Depends(get_admin_service)) -> AdminOverviewRead:
    """Reservation, request and delivery counts for the dashboard."""
    return await service.get_overview()
