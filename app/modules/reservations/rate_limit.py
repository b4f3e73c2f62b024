"""Rate-limit dependency for the public booking endpoint."""

from __future__ import annotations

from fastapi import Request

from app.core.config import get_settings
from app.core.rate_limit import enforce_rate_limit


async def enforce_reservation_rate_limit(request: Request) -> None:
    """Apply rate limit for reservation creation."""
    await enforce_rate_limit(
        request,
        scope="reservations",
        action="create",
        max_requests=get_settings().rate_limit_reservation_requests,
    )
