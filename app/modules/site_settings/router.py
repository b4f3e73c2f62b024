"""Public studio settings API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.config import Settings, get_settings
from app.modules.site_settings.schemas import PublicSettingsRead

router = APIRouter(tags=["settings"])


@router.get("/settings/public", response_model=PublicSettingsRead)
async def get_public_settings(settings: Settings = Depends(get_settings)) -> PublicSettingsRead:
    """Deposit instructions and contact channels; no authentication."""
    return PublicSettingsRead.from_settings(settings)
