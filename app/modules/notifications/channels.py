"""Message delivery channels backed by the Aligo gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

KAKAO_SUBJECT = "Reservation notice"


@dataclass(frozen=True)
class ChannelResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class MessageChannel(Protocol):
    async def send(self, recipient_phone: str, message: str, template_code: str) -> ChannelResult: ...


def normalize_phone(phone: str) -> str:
    """Strip dashes and spaces the gateway rejects."""
    return phone.replace("-", "").replace(" ", "")


class AligoKakaoChannel:
    """Kakao alimtalk delivery. Success is `code == 0` in the response body."""

    def __init__(
        self,
        *,
        api_key: str | None,
        user_id: str | None,
        sender_key: str | None,
        sender_phone: str | None,
        url: str,
        subject: str = KAKAO_SUBJECT,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.user_id = user_id
        self.sender_key = sender_key
        self.sender_phone = sender_phone
        self.url = url
        self.subject = subject
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, recipient_phone: str, message: str, template_code: str) -> ChannelResult:
        if not (self.api_key and self.user_id and self.sender_key):
            logger.warning("Kakao channel is not configured")
            return ChannelResult(success=False, error="Aligo API key not configured")

        form = {
            "apikey": self.api_key,
            "userid": self.user_id,
            "senderkey": self.sender_key,
            "tpl_code": template_code,
            "sender": self.sender_phone or "",
            "receiver_1": normalize_phone(recipient_phone),
            "subject_1": self.subject,
            "message_1": message,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(self.url, data=form)
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Kakao alimtalk request failed: %s", exc)
            return ChannelResult(success=False, error=str(exc) or exc.__class__.__name__)

        if body.get("code") == 0:
            info = body.get("info") or {}
            mid = info.get("mid")
            return ChannelResult(success=True, message_id=str(mid) if mid is not None else None)
        return ChannelResult(success=False, error=body.get("message") or "Alimtalk delivery failed")


class AligoSmsChannel:
    """LMS delivery used as fallback. Success is `result_code == "1"`."""

    def __init__(
        self,
        *,
        api_key: str | None,
        user_id: str | None,
        sender_phone: str | None,
        url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.user_id = user_id
        self.sender_phone = sender_phone
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, recipient_phone: str, message: str, template_code: str) -> ChannelResult:
        if not (self.api_key and self.user_id and self.sender_phone):
            logger.warning("SMS channel is not configured")
            return ChannelResult(success=False, error="Aligo API key not configured")

        form = {
            "key": self.api_key,
            "user_id": self.user_id,
            "sender": self.sender_phone,
            "receiver": normalize_phone(recipient_phone),
            "msg": message,
            "msg_type": "LMS",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(self.url, data=form)
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("SMS request failed: %s", exc)
            return ChannelResult(success=False, error=str(exc) or exc.__class__.__name__)

        if str(body.get("result_code")) == "1":
            msg_id = body.get("msg_id")
            return ChannelResult(success=True, message_id=str(msg_id) if msg_id is not None else None)
        return ChannelResult(success=False, error=body.get("message") or "SMS delivery failed")
