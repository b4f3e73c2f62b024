from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, time
from urllib.parse import parse_qs
from uuid import UUID, uuid4

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from app.core.config import Settings
from app.core.enums import NotificationChannelEnum, NotificationStatusEnum, NotificationTypeEnum
from app.modules.notifications.channels import AligoKakaoChannel, AligoSmsChannel, ChannelResult, normalize_phone
from app.modules.notifications.service import NotificationDispatcher, NotificationRequest
from app.modules.notifications.templates import TemplateContext, build_change_link, render_message
from app.shared.exceptions import NotFoundException


class FakeChannel:
    def __init__(self, result: ChannelResult) -> None:
        self.result = result
        self.calls: list[tuple[str, str, str]] = []

    async def send(self, recipient_phone: str, message: str, template_code: str) -> ChannelResult:
        self.calls.append((recipient_phone, message, template_code))
        return self.result


@dataclass
class FakeNotification:
    id: UUID
    type: NotificationTypeEnum
    recipient_phone: str
    message: str
    channel: NotificationChannelEnum = NotificationChannelEnum.KAKAO
    status: NotificationStatusEnum = NotificationStatusEnum.FAILED
    sent_at: datetime | None = None
    error_message: str | None = "kakao: down / SMS: down"


class FakeNotificationsRepository:
    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.records: list[dict] = []
        self.rows: dict[UUID, FakeNotification] = {}

    async def record_delivery(self, **fields) -> None:
        if self.broken:
            raise OperationalError("INSERT", {}, Exception("connection lost"))
        self.records.append(fields)

    async def get_notification_by_id(self, notification_id: UUID) -> FakeNotification | None:
        return self.rows.get(notification_id)

    async def mark_sent(self, notification, channel, sent_at) -> FakeNotification:
        notification.status = NotificationStatusEnum.SENT
        notification.channel = channel
        notification.sent_at = sent_at
        notification.error_message = None
        return notification

    async def mark_failed(self, notification, error_message) -> FakeNotification:
        notification.status = NotificationStatusEnum.FAILED
        notification.error_message = error_message
        return notification


def make_settings(**overrides) -> Settings:
    values = {
        "notifications_enabled": True,
        "store_name": "Clay Studio",
        "public_base_url": "https://clay.example/",
        "bank_info": "Shinhan 110-000-000000",
        "deposit_deadline_hours": 24,
    }
    values.update(overrides)
    return Settings(**values)


def make_request(notification_type: NotificationTypeEnum = NotificationTypeEnum.CONFIRMATION) -> NotificationRequest:
    return NotificationRequest(
        reservation_id=uuid4(),
        type=notification_type,
        recipient_phone="010-1234-5678",
        customer_name="Kim Minji",
        class_name="Pottery basics",
        date=date(2026, 11, 2),
        time=time(14, 0),
        price=45000,
        change_token="tok123",
    )


def test_confirmation_template_contains_change_link() -> None:
    context = TemplateContext(
        store_name="Clay Studio",
        customer_name="Kim Minji",
        class_name="Pottery basics",
        date=date(2026, 11, 2),
        time=time(14, 0),
        price=45000,
        change_link=build_change_link("https://clay.example/", "tok123"),
    )

    message = render_message(NotificationTypeEnum.CONFIRMATION, context)

    assert "https://clay.example/booking/change/tok123" in message
    assert "2026.11.02 14:00" in message
    assert "45,000 KRW" in message


def test_change_approved_template_shows_both_dates() -> None:
    context = TemplateContext(
        store_name="Clay Studio",
        customer_name="Kim Minji",
        class_name="Pottery basics",
        date=date(2026, 11, 2),
        time=time(14, 0),
        price=45000,
        requested_date=date(2026, 11, 9),
        requested_time=time(11, 0),
    )

    message = render_message(NotificationTypeEnum.CHANGE_APPROVED, context)

    assert "2026.11.02 14:00" in message
    assert "2026.11.09 11:00" in message


def test_change_link_needs_token() -> None:
    assert build_change_link("https://clay.example", None) is None


def test_normalize_phone_strips_separators() -> None:
    assert normalize_phone("010-1234 5678") == "01012345678"


@pytest.mark.asyncio
async def test_disabled_dispatcher_succeeds_without_sending() -> None:
    kakao = FakeChannel(ChannelResult(success=True))
    repository = FakeNotificationsRepository()
    dispatcher = NotificationDispatcher(
        repository,
        kakao,
        FakeChannel(ChannelResult(success=True)),
        make_settings(notifications_enabled=False),
    )

    result = await dispatcher.dispatch(make_request())

    assert result.success is True
    assert kakao.calls == []
    assert repository.records == []


@pytest.mark.asyncio
async def test_kakao_success_records_sent_row() -> None:
    kakao = FakeChannel(ChannelResult(success=True, message_id="m1"))
    sms = FakeChannel(ChannelResult(success=True))
    repository = FakeNotificationsRepository()
    dispatcher = NotificationDispatcher(repository, kakao, sms, make_settings())

    result = await dispatcher.dispatch(make_request())

    assert result.success is True
    assert result.channel == NotificationChannelEnum.KAKAO
    assert sms.calls == []
    assert kakao.calls[0][2] == "TP_CONFIRMATION"
    assert repository.records[0]["status"] == NotificationStatusEnum.SENT
    assert repository.records[0]["sent_at"] is not None


@pytest.mark.asyncio
async def test_kakao_failure_falls_back_to_sms() -> None:
    kakao = FakeChannel(ChannelResult(success=False, error="template mismatch"))
    sms = FakeChannel(ChannelResult(success=True))
    repository = FakeNotificationsRepository()
    dispatcher = NotificationDispatcher(repository, kakao, sms, make_settings())

    result = await dispatcher.dispatch(make_request(NotificationTypeEnum.APPROVAL))

    assert result.success is True
    assert result.channel == NotificationChannelEnum.SMS
    assert repository.records[0]["channel"] == NotificationChannelEnum.SMS
    assert "Shinhan 110-000-000000" in sms.calls[0][1]


@pytest.mark.asyncio
async def test_both_channels_failing_records_combined_error() -> None:
    repository = FakeNotificationsRepository()
    dispatcher = NotificationDispatcher(
        repository,
        FakeChannel(ChannelResult(success=False, error="kakao down")),
        FakeChannel(ChannelResult(success=False, error="sms down")),
        make_settings(),
    )

    result = await dispatcher.dispatch(make_request())

    assert result.success is False
    assert result.error == "kakao: kakao down / SMS: sms down"
    assert repository.records[0]["status"] == NotificationStatusEnum.FAILED
    assert repository.records[0]["error_message"] == result.error


@pytest.mark.asyncio
async def test_journal_failure_does_not_raise() -> None:
    dispatcher = NotificationDispatcher(
        FakeNotificationsRepository(broken=True),
        FakeChannel(ChannelResult(success=True)),
        FakeChannel(ChannelResult(success=True)),
        make_settings(),
    )

    result = await dispatcher.dispatch(make_request())

    assert result.success is True


@pytest.mark.asyncio
async def test_resend_updates_existing_row() -> None:
    repository = FakeNotificationsRepository()
    notification = FakeNotification(
        id=uuid4(),
        type=NotificationTypeEnum.CANCELLATION,
        recipient_phone="010-1234-5678",
        message="stored text",
    )
    repository.rows[notification.id] = notification
    sms = FakeChannel(ChannelResult(success=True))
    dispatcher = NotificationDispatcher(
        repository,
        FakeChannel(ChannelResult(success=False, error="kakao down")),
        sms,
        make_settings(),
    )

    updated = await dispatcher.resend(notification.id)

    assert updated.status == NotificationStatusEnum.SENT
    assert updated.channel == NotificationChannelEnum.SMS
    assert updated.error_message is None
    assert sms.calls[0][1] == "stored text"


@pytest.mark.asyncio
async def test_resend_unknown_notification_is_not_found() -> None:
    dispatcher = NotificationDispatcher(
        FakeNotificationsRepository(),
        FakeChannel(ChannelResult(success=True)),
        FakeChannel(ChannelResult(success=True)),
        make_settings(),
    )

    with pytest.raises(NotFoundException):
        await dispatcher.resend(uuid4())


@pytest.mark.asyncio
async def test_kakao_channel_posts_form_and_reads_code() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update({key: values[0] for key, values in parse_qs(request.content.decode()).items()})
        return httpx.Response(200, json={"code": 0, "message": "ok", "info": {"mid": 991}})

    channel = AligoKakaoChannel(
        api_key="key",
        user_id="studio",
        sender_key="sender-key",
        sender_phone="0212345678",
        url="https://kakaoapi.example/send/",
        transport=httpx.MockTransport(handler),
    )

    result = await channel.send("010-1234-5678", "hello", "TP_CONFIRMATION")

    assert result == ChannelResult(success=True, message_id="991")
    assert captured["receiver_1"] == "01012345678"
    assert captured["tpl_code"] == "TP_CONFIRMATION"


@pytest.mark.asyncio
async def test_kakao_channel_reports_gateway_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": -99, "message": "invalid template"})

    channel = AligoKakaoChannel(
        api_key="key",
        user_id="studio",
        sender_key="sender-key",
        sender_phone=None,
        url="https://kakaoapi.example/send/",
        transport=httpx.MockTransport(handler),
    )

    result = await channel.send("01012345678", "hello", "TP_CONFIRMATION")

    assert result.success is False
    assert result.error == "invalid template"


@pytest.mark.asyncio
async def test_sms_channel_without_credentials_fails_softly() -> None:
    channel = AligoSmsChannel(api_key=None, user_id=None, sender_phone=None, url="https://sms.example/send/")

    result = await channel.send("01012345678", "hello", "TP_CONFIRMATION")

    assert result == ChannelResult(success=False, error="Aligo API key not configured")


@pytest.mark.asyncio
async def test_sms_channel_treats_transport_error_as_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    channel = AligoSmsChannel(
        api_key="key",
        user_id="studio",
        sender_phone="0212345678",
        url="https://sms.example/send/",
        transport=httpx.MockTransport(handler),
    )

    result = await channel.send("01012345678", "hello", "TP_CONFIRMATION")

    assert result.success is False
    assert "refused" in result.error


@pytest.mark.asyncio
async def test_sms_channel_success_on_result_code_one() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["msg_type"] == ["LMS"]
        return httpx.Response(200, content=json.dumps({"result_code": "1", "msg_id": "55"}))

    channel = AligoSmsChannel(
        api_key="key",
        user_id="studio",
        sender_phone="0212345678",
        url="https://sms.example/send/",
        transport=httpx.MockTransport(handler),
    )

    result = await channel.send("01012345678", "hello", "TP_CONFIRMATION")

    assert result == ChannelResult(success=True, message_id="55")
