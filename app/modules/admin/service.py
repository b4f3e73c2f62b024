"""Admin business logic layer."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.modules.admin.repository import AdminRepository
from app.modules.admin.schemas import AdminOverviewRead
from app.shared.utils import local_date, utc_now


class AdminService:
    """Admin domain service."""

    def __init__(self, repository: AdminRepository, timezone_name: str | None = None) -> None:
        self.repository = repository
        self.timezone_name = timezone_name or get_settings().calendar_timezone

    async def get_overview(self) -> AdminOverviewRead:
        """Counts an operator checks first thing in the morning."""
        now = utc_now()
        snapshot = await self.repository.get_overview(local_date(now, self.timezone_name), now=now)
        return AdminOverviewRead(**snapshot)


async def get_admin_service(session: AsyncSession = Depends(get_db_session)) -> AdminService:
    """Dependency provider for admin service."""
    return AdminService(AdminRepository(session))
