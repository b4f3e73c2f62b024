"""Spreadsheet sync port and Google Sheets v4 adapter."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Protocol
from urllib.parse import quote
from uuid import UUID

import httpx

from app.core.metrics import record_sync_failure
from app.modules.integrations.google_auth import ServiceAccountTokenProvider
from app.shared.exceptions import ExternalSyncError
from app.shared.utils import format_date, format_price, format_time

logger = logging.getLogger(__name__)

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
STATUS_COLUMN = "H"
SCHEDULE_COLUMN = "F"
_ROW_NUMBER_RE = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class SheetRowData:
    """One confirmed reservation as a spreadsheet row (columns A to I)."""

    reservation_id: UUID
    created_at: datetime
    confirmed_at: datetime
    class_name: str
    customer_name: str
    customer_phone: str
    date: date
    time: time
    price: int
    status: str
    memo: str | None = None

    def as_values(self) -> list[str]:
        return [
            format_date(self.created_at.date()),
            format_date(self.confirmed_at.date()),
            self.class_name,
            self.customer_name,
            self.customer_phone,
            format_schedule_cell(self.date, self.time),
            format_price(self.price),
            self.status,
            self.memo or "",
        ]


def format_schedule_cell(day: date, start: time) -> str:
    return f"{format_date(day)} {format_time(start)}"


def parse_row_number(updated_range: str | None) -> int | None:
    """Extract the row number from an A1 range such as `Sheet!A12:I12`."""
    if not updated_range:
        return None
    match = _ROW_NUMBER_RE.search(updated_range)
    return int(match.group(1)) if match else None


class SheetsGateway(Protocol):
    async def append_row(self, data: SheetRowData) -> int | None: ...

    async def update_row(
        self,
        row_number: int,
        *,
        day: date | None = None,
        start: time | None = None,
        status: str | None = None,
    ) -> bool: ...

    async def delete_row(self, row_number: int) -> bool: ...


class NoopSheetsGateway:
    """Used when no spreadsheet is configured."""

    async def append_row(self, data: SheetRowData) -> int | None:
        return None

    async def update_row(
        self,
        row_number: int,
        *,
        day: date | None = None,
        start: time | None = None,
        status: str | None = None,
    ) -> bool:
        return False

    async def delete_row(self, row_number: int) -> bool:
        return False


class GoogleSheetsGateway:
    """Google Sheets REST adapter. Every method degrades to None/False on failure."""

    def __init__(
        self,
        spreadsheet_id: str,
        token_provider: ServiceAccountTokenProvider,
        *,
        sheet_name: str = "Reservations",
        sheet_gid: int = 0,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.token_provider = token_provider
        self.sheet_name = sheet_name
        self.sheet_gid = sheet_gid
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @property
    def _base_url(self) -> str:
        return f"{SHEETS_API_BASE}/{quote(self.spreadsheet_id, safe='')}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict,
        params: dict | None = None,
    ) -> httpx.Response:
        token = await self.token_provider.get_token()
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            response = await client.request(
                method,
                url,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        if response.status_code >= 400:
            raise ExternalSyncError(f"Sheets API returned {response.status_code}: {response.text}")
        return response

    async def append_row(self, data: SheetRowData) -> int | None:
        range_name = f"{self.sheet_name}!A:I"
        try:
            response = await self._request(
                "POST",
                f"{self._base_url}/values/{quote(range_name, safe='')}:append",
                params={"valueInputOption": "USER_ENTERED"},
                json={"values": [data.as_values()]},
            )
            updated_range = response.json().get("updates", {}).get("updatedRange")
        except (ExternalSyncError, httpx.HTTPError, ValueError) as exc:
            record_sync_failure("sheets", "append")
            logger.warning("Sheet append failed for reservation %s: %s", data.reservation_id, exc)
            return None

        row_number = parse_row_number(updated_range)
        if row_number is None:
            logger.warning("Sheet append for reservation %s returned no row range", data.reservation_id)
        return row_number

    async def update_row(
        self,
        row_number: int,
        *,
        day: date | None = None,
        start: time | None = None,
        status: str | None = None,
    ) -> bool:
        data: list[dict] = []
        if status:
            data.append({"range": f"{self.sheet_name}!{STATUS_COLUMN}{row_number}", "values": [[status]]})
        if day is not None and start is not None:
            data.append(
                {
                    "range": f"{self.sheet_name}!{SCHEDULE_COLUMN}{row_number}",
                    "values": [[format_schedule_cell(day, start)]],
                },
            )
        if not data:
            return True

        try:
            await self._request(
                "POST",
                f"{self._base_url}/values:batchUpdate",
                json={"valueInputOption": "USER_ENTERED", "data": data},
            )
            return True
        except (ExternalSyncError, httpx.HTTPError) as exc:
            record_sync_failure("sheets", "update")
            logger.warning("Sheet row %s update failed: %s", row_number, exc)
            return False

    async def delete_row(self, row_number: int) -> bool:
        request = {
            "deleteDimension": {
                "range": {
                    "sheetId": self.sheet_gid,
                    "dimension": "ROWS",
                    "startIndex": row_number - 1,
                    "endIndex": row_number,
                },
            },
        }
        try:
            await self._request("POST", f"{self._base_url}:batchUpdate", json={"requests": [request]})
            return True
        except (ExternalSyncError, httpx.HTTPError) as exc:
            record_sync_failure("sheets", "delete")
            logger.warning("Sheet row %s delete failed: %s", row_number, exc)
            return False
