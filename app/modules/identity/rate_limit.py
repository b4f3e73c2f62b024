"""Rate-limit dependencies for identity endpoints."""

from __future__ import annotations

from fastapi import Request

from app.core.config import get_settings
from app.core.rate_limit import enforce_rate_limit


async def enforce_register_rate_limit(request: Request) -> None:
    """Apply rate limit for register endpoint."""
    await enforce_rate_limit(
        request,
        scope="identity",
        action="register",
        max_requests=get_settings().rate_limit_register_requests,
    )


async def enforce_login_rate_limit(request: Request) -> None:
    """Apply rate limit for login endpoint."""
    await enforce_rate_limit(
        request,
        scope="identity",
        action="login",
        max_requests=get_settings().rate_limit_login_requests,
    )


async def enforce_refresh_rate_limit(request: Request) -> None:
    """Apply rate limit for refresh endpoint."""
    await enforce_rate_limit(
        request,
        scope="identity",
        action="refresh",
        max_requests=get_settings().rate_limit_refresh_requests,
    )
