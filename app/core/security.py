"""Password hashing and signed bearer tokens."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Literal

from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import get_settings
from app.shared.exceptions import AuthenticationException
from app.shared.utils import utc_now

TokenType = Literal["access", "refresh"]

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/identity/auth/login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _token_lifetime(token_type: TokenType) -> timedelta:
    if token_type == "access":
        return timedelta(minutes=settings.access_token_expire_minutes)
    return timedelta(days=settings.refresh_token_expire_days)


def issue_token(subject: str, token_type: TokenType, **claims: Any) -> str:
    """Sign a token for `subject`; extra claims (role, jti) are copied verbatim."""
    payload: dict[str, Any] = {
        **claims,
        "sub": subject,
        "type": token_type,
        "exp": utc_now() + _token_lifetime(token_type),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: TokenType) -> dict[str, Any]:
    """Verify signature, expiry and token type; the payload always carries `sub`."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationException("Invalid token") from exc

    if payload.get("type") != expected_type:
        raise AuthenticationException(f"Invalid {expected_type} token")
    if not payload.get("sub"):
        raise AuthenticationException("Token subject is missing")
    return payload
