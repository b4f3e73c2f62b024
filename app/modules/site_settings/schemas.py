"""Public studio settings schemas."""

from __future__ import annotations

from pydantic import BaseModel

from app.core.config import Settings


class PublicSettingsRead(BaseModel):
    """Studio details customers need before a reservation exists."""

    store_name: str
    bank_info: str | None
    deposit_deadline_hours: int | None
    store_address: str | None
    instagram_handle: str | None
    kakao_channel_id: str | None

    @classmethod
    def from_settings(cls, settings: Settings) -> PublicSettingsRead:
        return cls(
            store_name=settings.store_name,
            bank_info=settings.bank_info,
            deposit_deadline_hours=settings.deposit_deadline_hours,
            store_address=settings.store_address,
            instagram_handle=settings.instagram_handle,
            kakao_channel_id=settings.kakao_channel_id,
        )
