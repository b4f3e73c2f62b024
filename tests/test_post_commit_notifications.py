from __future__ import annotations

import asyncio
from datetime import date, time
from uuid import uuid4

import pytest

import app.core.database as database_module
from app.core.enums import NotificationChannelEnum, NotificationTypeEnum
from app.modules.notifications.service import DispatchResult, NotificationRequest, PostCommitNotifier


class FakeSession:
    def __init__(self, events: list) -> None:
        self.info: dict = {}
        self.events = events

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc_info) -> bool:
        self.events.append("closed")
        return False

    async def commit(self) -> None:
        self.events.append("commit")

    async def rollback(self) -> None:
        self.events.append("rollback")


def make_request(notification_type: NotificationTypeEnum = NotificationTypeEnum.APPROVAL) -> NotificationRequest:
    return NotificationRequest(
        reservation_id=uuid4(),
        type=notification_type,
        recipient_phone="010-1234-5678",
        customer_name="Kim",
        class_name="Wheel throwing",
        date=date(2026, 11, 2),
        time=time(14, 0),
        price=55000,
    )


@pytest.fixture
def events(monkeypatch: pytest.MonkeyPatch) -> list:
    recorded: list = []
    monkeypatch.setattr(database_module, "SessionLocal", lambda: FakeSession(recorded))
    return recorded


@pytest.mark.asyncio
async def test_notification_is_sent_after_commit(events: list) -> None:
    async def send(request: NotificationRequest) -> DispatchResult:
        events.append(("sent", request.type))
        return DispatchResult(success=True, channel=NotificationChannelEnum.KAKAO)

    async with database_module.transaction() as session:
        PostCommitNotifier(session, send=send).enqueue(make_request())
        events.append("reservation inserted")

    assert events == ["reservation inserted", "commit", "closed", ("sent", NotificationTypeEnum.APPROVAL)]


@pytest.mark.asyncio
async def test_rolled_back_transaction_sends_nothing(events: list) -> None:
    sent: list[NotificationRequest] = []

    async def send(request: NotificationRequest) -> DispatchResult:
        sent.append(request)
        return DispatchResult(success=True, channel=NotificationChannelEnum.KAKAO)

    with pytest.raises(RuntimeError):
        async with database_module.transaction() as session:
            PostCommitNotifier(session, send=send).enqueue(make_request())
            raise RuntimeError("slot full")

    assert sent == []
    assert "rollback" in events
    assert "commit" not in events


@pytest.mark.asyncio
async def test_failing_delivery_does_not_break_committed_request(events: list) -> None:
    async def send(request: NotificationRequest) -> DispatchResult:
        raise RuntimeError("aligo unreachable")

    async with database_module.transaction() as session:
        notifier = PostCommitNotifier(session, send=send)
        notifier.enqueue(make_request())
        notifier.enqueue(make_request(NotificationTypeEnum.CONFIRMATION))

    assert events == ["commit", "closed"]


@pytest.mark.asyncio
async def test_concurrent_bookings_do_not_wait_on_each_others_delivery(events: list) -> None:
    slot_lock = asyncio.Lock()
    lock_held_while_sending: list[bool] = []
    in_flight = 0
    peak_in_flight = 0

    async def send(request: NotificationRequest) -> DispatchResult:
        nonlocal in_flight, peak_in_flight
        lock_held_while_sending.append(slot_lock.locked())
        in_flight += 1
        peak_in_flight = max(peak_in_flight, in_flight)
        await asyncio.sleep(0.05)
        in_flight -= 1
        return DispatchResult(success=True, channel=NotificationChannelEnum.KAKAO)

    async def book() -> None:
        async with database_module.transaction() as session:
            async with slot_lock:
                PostCommitNotifier(session, send=send).enqueue(make_request())

    await asyncio.gather(book(), book(), book())

    assert lock_held_while_sending == [False, False, False]
    assert peak_in_flight == 3
