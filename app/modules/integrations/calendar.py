"""Calendar sync port and Google Calendar v3 adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Protocol
from urllib.parse import quote
from uuid import UUID

import httpx

from app.core.metrics import record_sync_failure
from app.modules.integrations.google_auth import ServiceAccountTokenProvider
from app.shared.exceptions import ExternalSyncError
from app.shared.utils import add_minutes, format_time

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"


@dataclass(frozen=True)
class CalendarEventData:
    """Fields needed to publish a confirmed reservation as an event."""

    reservation_id: UUID
    class_name: str
    customer_name: str
    customer_phone: str
    date: date
    time: time
    duration_minutes: int
    num_people: int
    memo: str | None = None


class CalendarGateway(Protocol):
    async def create_event(self, data: CalendarEventData) -> str | None: ...

    async def update_event(self, event_id: str, day: date, start: time, duration_minutes: int) -> bool: ...

    async def delete_event(self, event_id: str) -> bool: ...


class NoopCalendarGateway:
    """Used when no calendar is configured."""

    async def create_event(self, data: CalendarEventData) -> str | None:
        return None

    async def update_event(self, event_id: str, day: date, start: time, duration_minutes: int) -> bool:
        return False

    async def delete_event(self, event_id: str) -> bool:
        return False


class GoogleCalendarGateway:
    """Google Calendar REST adapter. Every method degrades to None/False on failure."""

    def __init__(
        self,
        calendar_id: str,
        token_provider: ServiceAccountTokenProvider,
        *,
        event_prefix: str = "Reservation",
        timezone_name: str = "Asia/Seoul",
        utc_offset: str = "+09:00",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.calendar_id = calendar_id
        self.token_provider = token_provider
        self.event_prefix = event_prefix
        self.timezone_name = timezone_name
        self.utc_offset = utc_offset
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @property
    def _events_url(self) -> str:
        return f"{CALENDAR_API_BASE}/calendars/{quote(self.calendar_id, safe='')}/events"

    def _event_window(self, day: date, start: time, duration_minutes: int) -> dict:
        start_at = add_minutes(day, start, 0)
        end_at = add_minutes(day, start, duration_minutes)
        return {
            "start": {
                "dateTime": f"{start_at.strftime('%Y-%m-%dT%H:%M:00')}{self.utc_offset}",
                "timeZone": self.timezone_name,
            },
            "end": {
                "dateTime": f"{end_at.strftime('%Y-%m-%dT%H:%M:00')}{self.utc_offset}",
                "timeZone": self.timezone_name,
            },
        }

    def build_event_body(self, data: CalendarEventData) -> dict:
        description_lines = [
            f"Customer: {data.customer_name}",
            f"Phone: {data.customer_phone}",
            f"People: {data.num_people}",
        ]
        if data.memo:
            description_lines.append(f"Request: {data.memo}")
        return {
            "summary": (
                f"[{self.event_prefix}] {data.class_name} - {data.customer_name}({data.num_people} people)"
            ),
            "description": "\n".join(description_lines),
            **self._event_window(data.date, data.time, data.duration_minutes),
        }

    async def _request(self, method: str, url: str, json: dict | None = None) -> httpx.Response:
        token = await self.token_provider.get_token()
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            response = await client.request(
                method,
                url,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        if response.status_code >= 400:
            raise ExternalSyncError(f"Calendar API {method} returned {response.status_code}: {response.text}")
        return response

    async def create_event(self, data: CalendarEventData) -> str | None:
        try:
            response = await self._request("POST", self._events_url, json=self.build_event_body(data))
            return response.json().get("id")
        except (ExternalSyncError, httpx.HTTPError, ValueError) as exc:
            record_sync_failure("calendar", "create")
            logger.warning(
                "Calendar event create failed for reservation %s: %s",
                data.reservation_id,
                exc,
            )
            return None

    async def update_event(self, event_id: str, day: date, start: time, duration_minutes: int) -> bool:
        try:
            await self._request(
                "PATCH",
                f"{self._events_url}/{quote(event_id, safe='')}",
                json=self._event_window(day, start, duration_minutes),
            )
            return True
        except (ExternalSyncError, httpx.HTTPError) as exc:
            record_sync_failure("calendar", "update")
            logger.warning(
                "Calendar event %s update to %s %s failed: %s",
                event_id,
                day.isoformat(),
                format_time(start),
                exc,
            )
            return False

    async def delete_event(self, event_id: str) -> bool:
        try:
            await self._request("DELETE", f"{self._events_url}/{quote(event_id, safe='')}")
            return True
        except (ExternalSyncError, httpx.HTTPError) as exc:
            record_sync_failure("calendar", "delete")
            logger.warning("Calendar event %s delete failed: %s", event_id, exc)
            return False
