from __future__ import annotations

import pytest

from app.core.enums import ReservationStatusEnum
from app.modules.reservations.transitions import (
    TERMINAL_STATUSES,
    can_transition,
    ensure_transition,
)
from app.shared.exceptions import InvalidTransitionException

PENDING = ReservationStatusEnum.PENDING
CONFIRMED = ReservationStatusEnum.CONFIRMED
REJECTED = ReservationStatusEnum.REJECTED
CANCELLED = ReservationStatusEnum.CANCELLED


@pytest.mark.parametrize(
    ("current", "target"),
    [(PENDING, CONFIRMED), (PENDING, REJECTED), (CONFIRMED, CANCELLED)],
)
def test_admin_transitions_allowed(current: ReservationStatusEnum, target: ReservationStatusEnum) -> None:
    assert can_transition(current, target, by_admin=True) is True


def test_customer_can_only_cancel_pending() -> None:
    assert can_transition(PENDING, CANCELLED, by_admin=False) is True
    assert can_transition(CONFIRMED, CANCELLED, by_admin=False) is False
    assert can_transition(PENDING, CONFIRMED, by_admin=False) is False


def test_admin_cannot_cancel_pending_reservation() -> None:
    assert can_transition(PENDING, CANCELLED, by_admin=True) is False


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
@pytest.mark.parametrize("by_admin", [True, False])
def test_terminal_statuses_have_no_exit(terminal: ReservationStatusEnum, by_admin: bool) -> None:
    for target in ReservationStatusEnum:
        assert can_transition(terminal, target, by_admin=by_admin) is False


def test_ensure_transition_names_source_and_target() -> None:
    with pytest.raises(InvalidTransitionException) as exc:
        ensure_transition(CONFIRMED, PENDING, by_admin=True)

    assert exc.value.status_code == 400
    assert exc.value.message == "Cannot change reservation status from 'confirmed' to 'pending'"


def test_repeated_illegal_transition_gives_same_error() -> None:
    messages = []
    for _ in range(2):
        with pytest.raises(InvalidTransitionException) as exc:
            ensure_transition(REJECTED, CONFIRMED, by_admin=True)
        messages.append(exc.value.message)

    assert messages[0] == messages[1]
