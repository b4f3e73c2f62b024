"""Orchestration of calendar and spreadsheet sync for reservations.

Sync is best effort: adapters never raise, and the reservation status write
that triggered a sync is never reverted because of a sync failure.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, time
from functools import lru_cache
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings, get_settings
from app.modules.integrations.calendar import (
    CalendarEventData,
    CalendarGateway,
    GoogleCalendarGateway,
    NoopCalendarGateway,
)
from app.modules.integrations.google_auth import (
    CALENDAR_SCOPE,
    SHEETS_SCOPE,
    ServiceAccountTokenProvider,
)
from app.modules.integrations.sheets import (
    GoogleSheetsGateway,
    NoopSheetsGateway,
    SheetRowData,
    SheetsGateway,
)
from app.modules.reservations.models import Reservation
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)

SHEET_STATUS_CONFIRMED = "Confirmed"


class SheetRowReconciler(Protocol):
    async def shift_sheet_rows_after(self, deleted_row: int) -> None: ...


@dataclass(frozen=True)
class ConfirmSyncResult:
    calendar_event_id: str | None
    sheet_row: int | None


@dataclass(frozen=True)
class CancelSyncResult:
    event_deleted: bool
    row_deleted: bool

    def cleared_fields(self) -> dict:
        fields: dict = {}
        if self.event_deleted:
            fields["google_calendar_event_id"] = None
        if self.row_deleted:
            fields["google_sheets_row"] = None
        return fields


class ReservationSyncService:
    """Pushes reservation lifecycle changes to the calendar and the sheet."""

    def __init__(
        self,
        calendar: CalendarGateway,
        sheets: SheetsGateway,
        row_reconciler: SheetRowReconciler | None = None,
    ) -> None:
        self.calendar = calendar
        self.sheets = sheets
        self.row_reconciler = row_reconciler

    async def on_confirmed(self, reservation: Reservation) -> ConfirmSyncResult:
        """Create the event and append the row concurrently."""
        studio_class = reservation.studio_class
        event_data = CalendarEventData(
            reservation_id=reservation.id,
            class_name=studio_class.name,
            customer_name=reservation.customer_name,
            customer_phone=reservation.customer_phone,
            date=reservation.desired_date,
            time=reservation.desired_time,
            duration_minutes=studio_class.duration_minutes,
            num_people=reservation.num_people,
            memo=reservation.customer_memo,
        )
        row_data = SheetRowData(
            reservation_id=reservation.id,
            created_at=reservation.created_at,
            confirmed_at=reservation.confirmed_at or utc_now(),
            class_name=studio_class.name,
            customer_name=reservation.customer_name,
            customer_phone=reservation.customer_phone,
            date=reservation.desired_date,
            time=reservation.desired_time,
            price=studio_class.price,
            status=SHEET_STATUS_CONFIRMED,
            memo=reservation.admin_memo,
        )
        event_id, row_number = await asyncio.gather(
            self.calendar.create_event(event_data),
            self.sheets.append_row(row_data),
        )
        return ConfirmSyncResult(calendar_event_id=event_id, sheet_row=row_number)

    async def on_cancelled(self, reservation: Reservation) -> CancelSyncResult:
        """Remove the event and the row, then renumber rows below it.

        The result tells the caller which stored references to clear.
        """
        event_deleted = False
        if reservation.google_calendar_event_id:
            event_deleted = await self.calendar.delete_event(reservation.google_calendar_event_id)

        deleted_row = reservation.google_sheets_row
        if deleted_row is None or not await self.sheets.delete_row(deleted_row):
            return CancelSyncResult(event_deleted=event_deleted, row_deleted=False)
        if self.row_reconciler is not None:
            try:
                await self.row_reconciler.shift_sheet_rows_after(deleted_row)
            except SQLAlchemyError:
                logger.exception("Renumbering sheet rows after row %s failed", deleted_row)
        return CancelSyncResult(event_deleted=event_deleted, row_deleted=True)


    async def on_rescheduled(self, reservation: Reservation, day: date, start: time) -> None:
        """Move the event and rewrite the row's date/time cell."""
        if reservation.google_calendar_event_id:
            await self.calendar.update_event(
                reservation.google_calendar_event_id,
                day,
                start,
                reservation.studio_class.duration_minutes,
            )
        if reservation.google_sheets_row is not None:
            await self.sheets.update_row(reservation.google_sheets_row, day=day, start=start)


@lru_cache
def _token_provider(scope: str) -> ServiceAccountTokenProvider:
    settings = get_settings()
    return ServiceAccountTokenProvider(
        client_email=settings.google_service_account_email or "",
        private_key=settings.google_service_account_private_key or "",
        scopes=[scope],
        token_uri=settings.google_token_uri,
        timeout_seconds=settings.http_timeout_seconds,
    )


def build_calendar_gateway(settings: Settings) -> CalendarGateway:
    if not (settings.google_credentials_configured and settings.google_calendar_id):
        return NoopCalendarGateway()
    return GoogleCalendarGateway(
        settings.google_calendar_id,
        _token_provider(CALENDAR_SCOPE),
        event_prefix=settings.calendar_event_prefix,
        timezone_name=settings.calendar_timezone,
        utc_offset=settings.calendar_utc_offset,
        timeout_seconds=settings.http_timeout_seconds,
    )


def build_sheets_gateway(settings: Settings) -> SheetsGateway:
    if not (settings.google_credentials_configured and settings.google_sheets_spreadsheet_id):
        return NoopSheetsGateway()
    return GoogleSheetsGateway(
        settings.google_sheets_spreadsheet_id,
        _token_provider(SHEETS_SCOPE),
        sheet_name=settings.google_sheets_sheet_name,
        sheet_gid=settings.google_sheets_sheet_gid,
        timeout_seconds=settings.http_timeout_seconds,
    )


def build_reservation_sync_service(
    row_reconciler: SheetRowReconciler | None = None,
    settings: Settings | None = None,
) -> ReservationSyncService:
    """Sync service wired to Google adapters, or no-ops when unconfigured."""
    settings = settings or get_settings()
    calendar = build_calendar_gateway(settings)
    sheets = build_sheets_gateway(settings)
    if isinstance(calendar, NoopCalendarGateway) and isinstance(sheets, NoopSheetsGateway):
        logger.debug("Google integrations not configured; reservation sync is disabled")
    return ReservationSyncService(calendar, sheets, row_reconciler)
