"""Shared utility functions."""

from __future__ import annotations

import secrets
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_change_token() -> str:
    """Return an opaque URL-safe capability token."""
    return secrets.token_urlsafe(24)


def normalize_time(value: time) -> time:
    """Drop seconds and microseconds so HH:MM values compare equal."""
    return value.replace(second=0, microsecond=0)


def add_minutes(day: date, start: time, minutes: int) -> datetime:
    """Return naive datetime `minutes` after the given date and start time."""
    return datetime.combine(day, start) + timedelta(minutes=minutes)


def format_date(value: date) -> str:
    """Format date as YYYY.MM.DD for messages and spreadsheets."""
    return value.strftime("%Y.%m.%d")


def format_time(value: time) -> str:
    """Format time as HH:MM."""
    return value.strftime("%H:%M")


def format_price(value: int) -> str:
    """Format integer price with thousands separators."""
    return f"{value:,} KRW"


def strip_or_none(value: str | None) -> str | None:
    """Trim text and collapse blanks to None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def local_date(moment: datetime, tz_name: str) -> date:
    """Calendar date of an aware datetime in the given IANA timezone."""
    return moment.astimezone(ZoneInfo(tz_name)).date()
