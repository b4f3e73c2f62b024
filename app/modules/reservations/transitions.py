"""Reservation status transition table."""

from __future__ import annotations

from app.core.enums import ReservationStatusEnum
from app.shared.exceptions import InvalidTransitionException

ADMIN_TRANSITIONS: dict[ReservationStatusEnum, frozenset[ReservationStatusEnum]] = {
    ReservationStatusEnum.PENDING: frozenset(
        {ReservationStatusEnum.CONFIRMED, ReservationStatusEnum.REJECTED},
    ),
    ReservationStatusEnum.CONFIRMED: frozenset({ReservationStatusEnum.CANCELLED}),
    ReservationStatusEnum.REJECTED: frozenset(),
    ReservationStatusEnum.CANCELLED: frozenset(),
}

CUSTOMER_TRANSITIONS: dict[ReservationStatusEnum, frozenset[ReservationStatusEnum]] = {
    ReservationStatusEnum.PENDING: frozenset({ReservationStatusEnum.CANCELLED}),
    ReservationStatusEnum.CONFIRMED: frozenset(),
    ReservationStatusEnum.REJECTED: frozenset(),
    ReservationStatusEnum.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ReservationStatusEnum.REJECTED, ReservationStatusEnum.CANCELLED})


def can_transition(
    current: ReservationStatusEnum,
    target: ReservationStatusEnum,
    *,
    by_admin: bool,
) -> bool:
    table = ADMIN_TRANSITIONS if by_admin else CUSTOMER_TRANSITIONS
    return target in table.get(current, frozenset())


def ensure_transition(
    current: ReservationStatusEnum,
    target: ReservationStatusEnum,
    *,
    by_admin: bool,
) -> None:
    """Raise InvalidTransitionException unless current -> target is allowed."""
    if not can_transition(current, target, by_admin=by_admin):
        raise InvalidTransitionException(
            f"Cannot change reservation status from '{current}' to '{target}'",
        )
