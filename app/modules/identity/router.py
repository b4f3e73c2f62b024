"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.modules.identity.rate_limit import (
    enforce_login_rate_limit,
    enforce_refresh_rate_limit,
    enforce_register_rate_limit,
)
from app.modules.identity.schemas import (
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    TokenPair,
    UserCreate,
    UserRead,
)
from app.modules.identity.service import IdentityService, get_current_user, get_identity_service

router = APIRouter(prefix="/identity", tags=["identity"])


@router.post(
    "/auth/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_register_rate_limit)],
)
async def register(
    payload: UserCreate,
    service: IdentityService = Depends(get_identity_service),
) -> UserRead:
    """Register a new customer account."""
    user = await service.register(payload)
    return UserRead.model_validate(user)


@router.post("/auth/login", response_model=TokenPair, dependencies=[Depends(enforce_login_rate_limit)])
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> TokenPair:
    """Sign in by email/password and return JWT token pair."""
    return await service.login(payload)


@router.post("/auth/refresh", response_model=TokenPair, dependencies=[Depends(enforce_refresh_rate_limit)])
async def refresh_tokens(
    payload: RefreshRequest,
    service: IdentityService = Depends(get_identity_service),
) -> TokenPair:
    """Rotate refresh token and issue new token pair."""
    return await service.refresh_tokens(payload.refresh_token)


@router.get("/users/me", response_model=UserRead)
async def get_me(current_user=Depends(get_current_user)) -> UserRead:
    """Return profile of authenticated user."""
    return UserRead.model_validate(current_user)


@router.patch("/users/me", response_model=UserRead)
async def update_me(
    payload: ProfileUpdate,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(get_current_user),
) -> UserRead:
    """Update booking profile of authenticated user."""
    user = await service.update_profile(current_user, payload)
    return UserRead.model_validate(user)
