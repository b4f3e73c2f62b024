"""Identity business logic layer."""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.core.security import (
    decode_token,
    hash_password,
    issue_token,
    oauth2_scheme,
    verify_password,
)
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.schemas import LoginRequest, ProfileUpdate, TokenPair, UserCreate
from app.shared.exceptions import (
    AuthenticationException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import strip_or_none, utc_now

settings = get_settings()


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in (RoleEnum.CUSTOMER, RoleEnum.ADMIN):
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def ensure_admin(self, email: str, password: str) -> tuple[User, bool]:
        """Create the admin account, or bring an existing one back to admin.

        Returns the user and whether it was created. Idempotent for the same
        email/password pair.
        """
        role = await self.repository.get_role_by_name(RoleEnum.ADMIN)
        if role is None:
            raise NotFoundException("Role not found")

        user = await self.repository.get_user_by_email(email)
        if user is None:
            user = await self.repository.create_user(
                email=email,
                password_hash=hash_password(password),
                role_id=role.id,
            )
            return user, True

        if user.role_id != role.id or not user.is_active or not verify_password(password, user.password_hash):
            user = await self.repository.grant_role(user, role.id, hash_password(password))
        return user, False

    async def register(
self, payload: UserCreate, role_name: RoleEnum = RoleEnum.CUSTOMER) -> User:
        """Register new account. Public sign-up always yields a customer."""
        existing_user = await self.repository.get_user_by_email(payload.email)
        if existing_user is not None:
            raise ConflictException("User with this email already exists")

        role = await self.repository.get_role_by_name(role_name)
        if role is None:
            raise NotFoundException("Role not found")

        return await self.repository.create_user(
            email=payload.email,
            password_hash=hash_password(payload.password),
            role_id=role.id,
            display_name=strip_or_none(payload.display_name),
            phone=strip_or_none(payload.phone),
        )

    async def login(self, payload: LoginRequest) -> TokenPair:
        """Authenticate user and issue JWT tokens."""
        user = await self.repository.get_user_by_email(payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise AuthenticationException("Invalid credentials")

        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return await self._issue_tokens(user)

    async def refresh_tokens(self, refresh_token_value: str) -> TokenPair:
        """Rotate refresh token and issue new token pair."""
        payload = decode_token(refresh_token_value, "refresh")
        token_id = payload.get("jti")
        if not token_id:
            raise AuthenticationException("Invalid refresh token")

        owner_id = await self.repository.consume_refresh_token(token_id, utc_now())
        if owner_id is None or str(owner_id) != payload["sub"]:
            raise AuthenticationException("Refresh token is not valid")

        user = await self.repository.get_user_by_id(owner_id)
        if user is None or not user.is_active:
            raise AuthenticationException("User is not valid")

        return await self._issue_tokens(user)

    async def _issue_tokens(self, user: User) -> TokenPair:
        token_id = str(uuid4())
        access_token = issue_token(str(user.id), "access", role=user.role.name)
        refresh_token = issue_token(str(user.id), "refresh", role=user.role.name, jti=token_id)
        expires_at = utc_now() + timedelta(days=settings.refresh_token_expire_days)
        await self.repository.create_refresh_token(user.id, token_id, expires_at)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token, "access")
        user = await self.repository.get_user_by_id(UUID(payload["sub"]))
        if user is None:
            raise AuthenticationException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return user

    async def update_profile(self, user: User, payload: ProfileUpdate) -> User:
        """Overwrite the profile fields present in the payload."""
        changes = {
            name: strip_or_none(value)
            for name, value in payload.model_dump(exclude_unset=True).items()
        }
        return await self.repository.update_profile(user, **changes)

    async def fill_profile_from_booking(
        self,
        user: User,
        *,
        customer_name: str,
        customer_phone: str,
        depositor_name: str,
    ) -> None:
        """Fill empty profile fields from the first booking form."""
        if user.display_name and user.phone:
            return
        await self.repository.update_profile(
            user,
            display_name=user.display_name or customer_name,
            phone=user.phone or customer_phone,
            depositor_name=user.depositor_name or depositor_name,
        )


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependency that only lets administrators through."""
    if not current_user.is_admin:
        raise UnauthorizedException("Operation not permitted for your role")
    return current_user
