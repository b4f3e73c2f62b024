"""Identity repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import RoleEnum
from app.modules.identity.models import RefreshToken, Role, User


class IdentityRepository:
    """Accounts, roles and refresh-token rotation."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _users() -> Select[tuple[User]]:
        return select(User).options(selectinload(User.role))

    async def get_role_by_name(self, role_name: RoleEnum) -> Role | None:
        return await self.session.scalar(select(Role).where(Role.name == role_name))

    async def create_role(self, role_name: RoleEnum) -> Role:
        role = Role(name=role_name)
        self.session.add(role)
        await self.session.flush()
        return role

    async def get_user_by_email(self, email: str) -> User | None:
        return await self.session.scalar(self._users().where(User.email == email.lower()))

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        return await self.session.scalar(self._users().where(User.id == user_id))

    async def create_user(
        self,
        email: str,
        password_hash: str,
        role_id: UUID,
        display_name: str | None = None,
        phone: str | None = None,
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            role_id=role_id,
            display_name=display_name,
            phone=phone,
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user, attribute_names=["role"])
        return user

    async def update_profile(self, user: User, **fields: str | None) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await self.session.flush()
        return user

    async def grant_role(self, user: User, role_id: UUID, password_hash: str) -> User:
        """Reactivate `user` under `role_id` with a new password hash."""
        user.role_id = role_id
        user.password_hash = password_hash
        user.is_active = True
        await self.session.flush()
        await self.session.refresh(user, attribute_names=["role"])
        return user


    async def create_refresh_token(self, user_id: UUID, token_id: str, expires_at: datetime) -> RefreshToken:
        refresh_token = RefreshToken(user_id=user_id, token_id=token_id, expires_at=expires_at)
        self.session.add(refresh_token)
        await self.session.flush()
        return refresh_token

    async def consume_refresh_token(self, token_id: str, now: datetime) -> UUID | None:
        """Revoke a live token and return its owner; None when already used or expired.

        A single conditional UPDATE, so two refreshes racing on the same token
        cannot both succeed.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token_id == token_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .returning(RefreshToken.user_id)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()
