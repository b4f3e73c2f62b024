from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.core.enums import RoleEnum
from app.core.security import decode_token, issue_token
from app.modules.identity.schemas import LoginRequest, ProfileUpdate, UserCreate
from app.modules.identity.service import IdentityService, require_admin
from app.shared.exceptions import (
    AuthenticationException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)


class FakeIdentityRepository:
    def __init__(self) -> None:
        self.roles: dict[RoleEnum, SimpleNamespace] = {}
        self.users: dict[str, SimpleNamespace] = {}
        self.tokens: dict[str, dict] = {}

    async def get_role_by_name(self, role_name):
        return self.roles.get(role_name)

    async def create_role(self, role_name):
        role = SimpleNamespace(id=uuid4(), name=role_name)
        self.roles[role_name] = role
        return role

    async def get_user_by_email(self, email):
        return self.users.get(email)

    async def create_user(self, *, email, password_hash, role_id, display_name=None, phone=None):
        user = SimpleNamespace(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            role_id=role_id,
            display_name=display_name,
            phone=phone,
            depositor_name=None,
            is_active=True,
        )
        self.users[email] = user
        return user

    async def update_profile(self, user, **fields):
        for key, value in fields.items():
            setattr(user, key, value)
        return user

    async def grant_role(self, user, role_id, password_hash):
        user.role_id = role_id
        user.password_hash = password_hash
        user.is_active = True
        return user

    async def get_user_by_id(self, user_id):
        return next((user for user in self.users.values() if user.id == user_id), None)

    async def create_refresh_token(self, user_id, token_id, expires_at):
        self.tokens[token_id] = {"user_id": user_id, "expires_at": expires_at, "revoked": False}

    async def consume_refresh_token(self, token_id, now):
        token = self.tokens.get(token_id)
        if token is None or token["revoked"] or token["expires_at"] <= now:
            return None
        token["revoked"] = True
        return token["user_id"]


@pytest.fixture
def no_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    import app.modules.identity.service as identity_service_module

    monkeypatch.setattr(identity_service_module, "hash_password", lambda value: f"hashed:{value}")
    monkeypatch.setattr(identity_service_module, "verify_password", lambda plain, hashed: hashed == f"hashed:{plain}")


@pytest.mark.asyncio
async def test_default_roles_created_once() -> None:
    repository = FakeIdentityRepository()
    service = IdentityService(repository)  # type: ignore[arg-type]

    await service.ensure_default_roles()
    customer_role = repository.roles[RoleEnum.CUSTOMER]
    await service.ensure_default_roles()

    assert set(repository.roles) == {RoleEnum.CUSTOMER, RoleEnum.ADMIN}
    assert repository.roles[RoleEnum.CUSTOMER] is customer_role


@pytest.mark.asyncio
async def test_register_strips_profile_and_rejects_duplicates(no_hashing: None) -> None:
    repository = FakeIdentityRepository()
    service = IdentityService(repository)  # type: ignore[arg-type]
    await service.ensure_default_roles()
    payload = UserCreate(email="minji@example.com", password="secret-pass", display_name="  Minji ", phone=" ")

    user = await service.register(payload)

    assert user.display_name == "Minji"
    assert user.phone is None
    assert user.password_hash == "hashed:secret-pass"
    assert user.role_id == repository.roles[RoleEnum.CUSTOMER].id
    with pytest.raises(ConflictException):
        await service.register(payload)


@pytest.mark.asyncio
async def test_booking_form_fills_only_missing_profile_fields() -> None:
    repository = FakeIdentityRepository()
    service = IdentityService(repository)  # type: ignore[arg-type]
    user = SimpleNamespace(display_name="Minji", phone=None, depositor_name=None)

    await service.fill_profile_from_booking(
        user,
        customer_name="Kim Minji",
        customer_phone="010-1234-5678",
        depositor_name="Kim M",
    )

    assert user.display_name == "Minji"
    assert user.phone == "010-1234-5678"
    assert user.depositor_name == "Kim M"


@pytest.mark.asyncio
async def test_profile_update_clears_blank_fields() -> None:
    service = IdentityService(FakeIdentityRepository())  # type: ignore[arg-type]
    user = SimpleNamespace(display_name="Minji", phone="010", depositor_name="Kim")

    await service.update_profile(user, ProfileUpdate(phone="  "))

    assert user.phone is None
    assert user.display_name == "Minji"


@pytest.mark.asyncio
async def test_require_admin_blocks_customers() -> None:
    customer = SimpleNamespace(is_admin=False)
    admin = SimpleNamespace(is_admin=True)

    with pytest.raises(UnauthorizedException):
        await require_admin(customer)
    assert await require_admin(admin) is admin


def test_access_token_cannot_be_used_as_refresh_token() -> None:
    token = issue_token("user-1", "access", role="customer")

    assert decode_token(token, "access")["role"] == "customer"
    with pytest.raises(AuthenticationException) as exc:
        decode_token(token, "refresh")
    assert exc.value.message == "Invalid refresh token"


def test_tampered_token_is_rejected() -> None:
    token = issue_token("user-1", "refresh", jti="abc")

    with pytest.raises(AuthenticationException):
        decode_token(token[:-2] + "xx", "refresh")


@pytest.mark.asyncio
async def test_refresh_token_rotates_and_cannot_be_reused(no_hashing: None) -> None:
    repository = FakeIdentityRepository()
    service = IdentityService(repository)  # type: ignore[arg-type]
    await service.ensure_default_roles()
    user = await service.register(UserCreate(email="minji@example.com", password="secret-pass"))
    user.is_active = True
    user.role = repository.roles[RoleEnum.CUSTOMER]

    first_pair = await service.login(LoginRequest(email="minji@example.com", password="secret-pass"))
    second_pair = await service.refresh_tokens(first_pair.refresh_token)

    assert second_pair.refresh_token != first_pair.refresh_token
    with pytest.raises(AuthenticationException):
        await service.refresh_tokens(first_pair.refresh_token)


@pytest.mark.asyncio
async def test_ensure_admin_creates_account_once(no_hashing: None) -> None:
    repository = FakeIdentityRepository()
    service = IdentityService(repository)  # type: ignore[arg-type]
    await service.ensure_default_roles()

    admin, created = await service.ensure_admin("owner@example.com", "owner-pass-1")
    again, created_again = await service.ensure_admin("owner@example.com", "owner-pass-1")

    assert created is True
    assert created_again is False
    assert again is admin
    assert admin.role_id == repository.roles[RoleEnum.ADMIN].id
    assert admin.password_hash == "hashed:owner-pass-1"


@pytest.mark.asyncio
async def test_ensure_admin_promotes_existing_customer(no_hashing: None) -> None:
    repository = FakeIdentityRepository()
    service = IdentityService(repository)  # type: ignore[arg-type]
    await service.ensure_default_roles()
    customer = await service.register(UserCreate(email="owner@example.com", password="customer-pass"))
    customer.is_active = False

    admin, created = await service.ensure_admin("owner@example.com", "owner-pass-1")

    assert created is False
    assert admin is customer
    assert admin.role_id == repository.roles[RoleEnum.ADMIN].id
    assert admin.is_active is True
    assert admin.password_hash == "hashed:owner-pass-1"


@pytest.mark.asyncio
async def test_ensure_admin_requires_roles() -> None:
    service = IdentityService(FakeIdentityRepository())  # type: ignore[arg-type]

    with pytest.raises(NotFoundException):
        await service.ensure_admin("owner@example.com", "owner-pass-1")
