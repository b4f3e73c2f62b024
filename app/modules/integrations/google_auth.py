"""Google service-account access tokens (OAuth 2.0 JWT bearer grant)."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import httpx
from jose import JOSEError, jwt

from app.shared.exceptions import ExternalSyncError
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)

CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600
REFRESH_MARGIN_SECONDS = 60


class ServiceAccountTokenProvider:
    """Exchange an RS256-signed assertion for an access token and cache it."""

    def __init__(
        self,
        client_email: str,
        private_key: str,
        scopes: list[str],
        token_uri: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_email = client_email
        self.private_key = private_key
        self.scopes = scopes
        self.token_uri = token_uri
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._access_token: str | None = None
        self._expires_at = None
        self._lock = asyncio.Lock()

    def build_assertion(self) -> str:
        issued_at = int(utc_now().timestamp())
        claims = {
            "iss": self.client_email,
            "scope": " ".join(self.scopes),
            "aud": self.token_uri,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JOSEError as exc:
            raise ExternalSyncError(f"Cannot sign service account assertion: {exc}") from exc

    def _cached_token(self) -> str | None:
        if self._access_token is None or self._expires_at is None:
            return None
        if utc_now() >= self._expires_at - timedelta(seconds=REFRESH_MARGIN_SECONDS):
            return None
        return self._access_token

    async def get_token(self) -> str:
        """Return a valid bearer token, fetching a new one when near expiry."""
        cached = self._cached_token()
        if cached is not None:
            return cached

        async with self._lock:
            cached = self._cached_token()
            if cached is not None:
                return cached

            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(
                    self.token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": self.build_assertion()},
                )
            if response.status_code != 200:
                raise ExternalSyncError(f"Token endpoint returned {response.status_code}: {response.text}")

            body = response.json()
            token = body.get("access_token")
            if not token:
                raise ExternalSyncError("Token endpoint response has no access_token")

            self._access_token = token
            self._expires_at = utc_now() + timedelta(seconds=int(body.get("expires_in", 3600)))
            logger.debug("Fetched Google access token for %s", self.client_email)
            return token
