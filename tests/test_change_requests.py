from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import IntegrityError

import app.modules.change_requests.service as change_request_service_module
from app.core.enums import (
    ChangeRequestStatusEnum,
    NotificationTypeEnum,
    ReservationStatusEnum,
    RoleEnum,
)
from app.modules.change_requests.repository import (
    ONE_PENDING_INDEX,
    PENDING_CONFLICT_MESSAGE,
    SCHEDULE_FK,
    ChangeRequestsRepository,
)
from app.modules.change_requests.schemas import (
    ChangeRequestCreate,
    ChangeRequestDecision,
    ChangeRequestTokenCreate,
)
from app.modules.change_requests.service import ALREADY_PROCESSED_MESSAGE, ChangeRequestService
from app.modules.scheduling.capacity import CapacityChecker
from app.shared.exceptions import (
    CapacityExceededException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)

FIXED_NOW = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)
CURRENT_DATE = date(2026, 11, 2)
CURRENT_TIME = time(14, 0)
NEW_DATE = date(2026, 11, 9)
NEW_TIME = time(11, 0)


@dataclass
class FakeClass:
    id: UUID
    name: str = "Leather wallet"
    price: int = 60000
    duration_minutes: int = 90
    max_participants: int = 2


@dataclass
class FakeSchedule:
    id: UUID
    class_id: UUID
    studio_class: FakeClass
    schedule_date: date
    start_time: time
    max_participants: int | None = None
    is_active: bool = True

    @property
    def effective_max_participants(self) -> int:
        if self.max_participants is not None:
            return self.max_participants
        return self.studio_class.max_participants


@dataclass
class FakeReservation:
    id: UUID
    user_id: UUID
    class_id: UUID
    schedule_id: UUID | None
    studio_class: FakeClass
    status: ReservationStatusEnum = ReservationStatusEnum.CONFIRMED
    desired_date: date = CURRENT_DATE
    desired_time: time = CURRENT_TIME
    num_people: int = 1
    customer_name: str = "Lee Jiho"
    customer_phone: str = "010-9876-5432"
    change_token: str = "change-token-123"
    google_calendar_event_id: str | None = "evt-9"
    google_sheets_row: int | None = 3


@dataclass
class FakeChangeRequest:
    id: UUID
    reservation_id: UUID
    reservation: FakeReservation
    original_date: date
    original_time: time
    requested_date: date
    requested_time: time
    schedule_id: UUID | None = None
    reason: str | None = None
    status: ChangeRequestStatusEnum = ChangeRequestStatusEnum.PENDING
    reject_reason: str | None = None
    processed_at: datetime | None = None
    created_at: datetime = FIXED_NOW


class FakeReservationsRepository:
    def __init__(self, reservations: dict[UUID, FakeReservation], lock_log: list) -> None:
        self.reservations = reservations
        self.lock_log = lock_log

    async def get_for_update(self, reservation_id: UUID) -> FakeReservation | None:
        self.lock_log.append(("reservation", reservation_id))
        return self.reservations.get(reservation_id)

    async def get_by_change_token(self, change_token: str, *, for_update: bool = False) -> FakeReservation | None:
        return next((item for item in self.reservations.values() if item.change_token == change_token), None)

    async def guarded_update(self, reservation: FakeReservation, expected_status, **values) -> bool:
        if reservation.status != expected_status:
            return False
        for name, value in values.items():
            setattr(reservation, name, value)
        return True


class FakeChangeRequestsRepository:
    def __init__(self, reservations: dict[UUID, FakeReservation]) -> None:
        self.reservations = reservations
        self.items: dict[UUID, FakeChangeRequest] = {}
        self.lock_log: list = []

    async def has_pending(self, reservation_id: UUID) -> bool:
        return any(
            item.reservation_id == reservation_id and item.status == ChangeRequestStatusEnum.PENDING
            for item in self.items.values()
        )

    async def create_change_request(self, **fields) -> FakeChangeRequest:
        change_request = FakeChangeRequest(
            id=uuid4(),
            reservation=self.reservations[fields["reservation_id"]],
            **fields,
        )
        self.items[change_request.id] = change_request
        return change_request

    async def get_reservation_id(self, change_request_id: UUID) -> UUID | None:
        item = self.items.get(change_request_id)
        return item.reservation_id if item else None

    async def get_for_update(self, change_request_id: UUID) -> FakeChangeRequest | None:
        self.lock_log.append(("change_request", change_request_id))
        return self.items.get(change_request_id)

    async def mark_processed(
        self,
        change_request: FakeChangeRequest,
        status: ChangeRequestStatusEnum,
        processed_at: datetime,
        reject_reason: str | None = None,
    ) -> FakeChangeRequest:
        change_request.status = status
        change_request.processed_at = processed_at
        change_request.reject_reason = reject_reason
        return change_request

    async def list_change_requests(self, limit: int, offset: int, status=None):
        items = [item for item in self.items.values() if status is None or item.status == status]
        return items[offset : offset + limit], len(items)


class FakeSchedulingRepository:
    def __init__(self, schedules: dict[UUID, FakeSchedule], reserved: dict[UUID, int] | None = None) -> None:
        self.schedules = schedules
        self.reserved = reserved or {}

    async def get_schedule_by_id(self, schedule_id: UUID) -> FakeSchedule | None:
        return self.schedules.get(schedule_id)

    async def lock_schedule(self, schedule_id: UUID) -> FakeSchedule | None:
        return self.schedules.get(schedule_id)

    async def reserved_seats(self, schedule_id: UUID) -> int:
        return self.reserved.get(schedule_id, 0)


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict] = []
        self.events: list[dict] = []

    async def create_audit_log(self, **fields) -> None:
        self.logs.append(fields)

    async def create_outbox_event(self, **fields) -> None:
        self.events.append(fields)


class FakeNotifier:
    def __init__(self) -> None:
        self.requests = []

    def enqueue(self, request) -> None:
        self.requests.append(request)


@dataclass
class FakeSyncService:
    rescheduled: list[tuple] = field(default_factory=list)

    async def on_rescheduled(self, reservation, day: date, start: time) -> None:
        self.rescheduled.append((reservation.id, day, start))


@dataclass
class Harness:
    service: ChangeRequestService
    reservation: FakeReservation
    owner: SimpleNamespace
    change_requests: FakeChangeRequestsRepository
    scheduling: FakeSchedulingRepository
    audit: FakeAuditRepository
    notifier: FakeNotifier
    sync: FakeSyncService
    target: FakeSchedule


def make_actor(user_id: UUID | None = None, role: RoleEnum = RoleEnum.CUSTOMER) -> SimpleNamespace:
    return SimpleNamespace(id=user_id or uuid4(), role=SimpleNamespace(name=role))


def make_harness(
    *,
    status: ReservationStatusEnum = ReservationStatusEnum.CONFIRMED,
    reserved_on_target: int = 0,
) -> Harness:
    studio_class = FakeClass(id=uuid4())
    owner = make_actor()
    current = FakeSchedule(uuid4(), studio_class.id, studio_class, CURRENT_DATE, CURRENT_TIME)
    target = FakeSchedule(uuid4(), studio_class.id, studio_class, NEW_DATE, NEW_TIME)
    reservation = FakeReservation(
        id=uuid4(),
        user_id=owner.id,
        class_id=studio_class.id,
        schedule_id=current.id,
        studio_class=studio_class,
        status=status,
    )
    reservations = {reservation.id: reservation}
    change_requests = FakeChangeRequestsRepository(reservations)
    scheduling = FakeSchedulingRepository(
        {current.id: current, target.id: target},
        reserved={target.id: reserved_on_target},
    )
    audit = FakeAuditRepository()
    notifier = FakeNotifier()
    sync = FakeSyncService()
    service = ChangeRequestService(
        repository=change_requests,
        reservations_repository=FakeReservationsRepository(reservations, change_requests.lock_log),
        scheduling_repository=scheduling,
        capacity_checker=CapacityChecker(scheduling),
        audit_repository=audit,
        notifier=notifier,
        sync_service=sync,
    )
    return Harness(service, reservation, owner, change_requests, scheduling, audit, notifier, sync, target)


def move_payload(harness: Harness, **overrides) -> ChangeRequestCreate:
    data = {
        "requested_date": NEW_DATE,
        "requested_time": NEW_TIME,
        "schedule_id": harness.target.id,
        "reason": "Business trip",
    }
    data.update(overrides)
    return ChangeRequestCreate(**data)


@pytest.fixture(autouse=True)
def _fixed_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(change_request_service_module, "utc_now", lambda: FIXED_NOW)


@pytest.mark.asyncio
async def test_owner_creates_pending_request_with_original_slot() -> None:
    harness = make_harness()

    change_request = await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), harness.owner)

    assert change_request.status == ChangeRequestStatusEnum.PENDING
    assert change_request.original_date == CURRENT_DATE
    assert change_request.original_time == CURRENT_TIME
    assert change_request.requested_date == NEW_DATE
    assert harness.audit.events[-1]["event_type"] == "change_request.created"


@pytest.mark.asyncio
async def test_same_date_and_time_is_rejected_without_insert() -> None:
    harness = make_harness()

    with pytest.raises(ValidationException):
        await harness.service.create_for_owner(
            harness.reservation.id,
            move_payload(harness, requested_date=CURRENT_DATE, requested_time=CURRENT_TIME, schedule_id=None),
            harness.owner,
        )
    assert harness.change_requests.items == {}


@pytest.mark.asyncio
async def test_non_owner_is_forbidden() -> None:
    harness = make_harness()

    with pytest.raises(UnauthorizedException):
        await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), make_actor())


@pytest.mark.asyncio
async def test_pending_reservation_cannot_be_changed() -> None:
    harness = make_harness(status=ReservationStatusEnum.PENDING)

    with pytest.raises(ValidationException):
        await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), harness.owner)


@pytest.mark.asyncio
async def test_second_pending_request_is_conflict() -> None:
    harness = make_harness()
    await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), harness.owner)

    with pytest.raises(ConflictException) as exc:
        await harness.service.create_for_owner(
            harness.reservation.id,
            move_payload(harness, requested_time=time(16, 0), schedule_id=None),
            harness.owner,
        )
    assert exc.value.message == PENDING_CONFLICT_MESSAGE
    assert len(harness.change_requests.items) == 1


@pytest.mark.asyncio
async def test_target_slot_must_match_requested_time() -> None:
    harness = make_harness()

    with pytest.raises(ValidationException):
        await harness.service.create_for_owner(
            harness.reservation.id,
            move_payload(harness, requested_time=time(17, 0)),
            harness.owner,
        )


@pytest.mark.asyncio
async def test_full_target_slot_is_conflict() -> None:
    harness = make_harness(reserved_on_target=2)

    with pytest.raises(CapacityExceededException):
        await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), harness.owner)


@pytest.mark.asyncio
async def test_token_creation_and_unknown_token() -> None:
    harness = make_harness()

    change_request = await harness.service.create_with_token(
        ChangeRequestTokenCreate(token="change-token-123", requested_date=NEW_DATE, requested_time=NEW_TIME),
    )
    assert change_request.reservation_id == harness.reservation.id

    with pytest.raises(NotFoundException):
        await harness.service.create_with_token(
            ChangeRequestTokenCreate(token="unknown-token", requested_date=NEW_DATE, requested_time=NEW_TIME),
        )


@pytest.mark.asyncio
async def test_token_summary_reports_pending_request() -> None:
    harness = make_harness()
    await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), harness.owner)

    summary = await harness.service.get_by_token("change-token-123")

    assert summary.reservation_id == harness.reservation.id
    assert summary.class_name == "Leather wallet"
    assert summary.has_pending_request is True


@pytest.mark.asyncio
async def test_approve_moves_reservation_and_keeps_status() -> None:
    harness = make_harness()
    change_request = await harness.service.create_for_owner(
        harness.reservation.id,
        move_payload(harness),
        harness.owner,
    )

    approved = await harness.service.apply_admin_decision(
        change_request.id,
        ChangeRequestDecision(status=ChangeRequestStatusEnum.APPROVED),
        make_actor(role=RoleEnum.ADMIN),
    )

    assert approved.status == ChangeRequestStatusEnum.APPROVED
    assert approved.processed_at == FIXED_NOW
    assert harness.reservation.status == ReservationStatusEnum.CONFIRMED
    assert harness.reservation.desired_date == NEW_DATE
    assert harness.reservation.desired_time == NEW_TIME
    assert harness.reservation.schedule_id == harness.target.id
    assert harness.sync.rescheduled == [(harness.reservation.id, NEW_DATE, NEW_TIME)]
    notification = harness.notifier.requests[-1]
    assert notification.type == NotificationTypeEnum.CHANGE_APPROVED
    assert notification.date == CURRENT_DATE
    assert notification.requested_date == NEW_DATE
    assert "reservation.rescheduled" in [event["event_type"] for event in harness.audit.events]


@pytest.mark.asyncio
async def test_approve_rechecks_capacity() -> None:
    harness = make_harness()
    change_request = await harness.service.create_for_owner(
        harness.reservation.id,
        move_payload(harness),
        harness.owner,
    )
    harness.scheduling.reserved[harness.target.id] = 2

    with pytest.raises(CapacityExceededException):
        await harness.service.approve(change_request.id, make_actor(role=RoleEnum.ADMIN))
    assert harness.reservation.desired_date == CURRENT_DATE


@pytest.mark.asyncio
async def test_reject_stores_reason_and_notifies() -> None:
    harness = make_harness()
    change_request = await harness.service.create_for_owner(
        harness.reservation.id,
        move_payload(harness),
        harness.owner,
    )

    rejected = await harness.service.reject(change_request.id, make_actor(role=RoleEnum.ADMIN), "Fully booked")

    assert rejected.status == ChangeRequestStatusEnum.REJECTED
    assert rejected.reject_reason == "Fully booked"
    assert harness.reservation.desired_date == CURRENT_DATE
    assert harness.notifier.requests[-1].type == NotificationTypeEnum.CHANGE_REJECTED
    assert harness.notifier.requests[-1].reject_reason == "Fully booked"


@pytest.mark.asyncio
async def test_processed_request_cannot_be_decided_again() -> None:
    harness = make_harness()
    change_request = await harness.service.create_for_owner(
        harness.reservation.id,
        move_payload(harness),
        harness.owner,
    )
    admin = make_actor(role=RoleEnum.ADMIN)
    await harness.service.reject(change_request.id, admin, None)

    with pytest.raises(InvalidTransitionException) as exc:
        await harness.service.approve(change_request.id, admin)
    assert exc.value.message == ALREADY_PROCESSED_MESSAGE


@pytest.mark.asyncio
@pytest.mark.parametrize("decision", ["approve", "reject"])
async def test_decision_locks_reservation_before_change_request(decision: str) -> None:
    harness = make_harness()
    change_request = await harness.service.create_for_owner(
        harness.reservation.id,
        move_payload(harness),
        harness.owner,
    )
    harness.change_requests.lock_log.clear()

    await getattr(harness.service, decision)(change_request.id, make_actor(role=RoleEnum.ADMIN))

    assert harness.change_requests.lock_log == [
        ("reservation", harness.reservation.id),
        ("change_request", change_request.id),
    ]


@pytest.mark.asyncio
async def test_decision_on_unknown_change_request_takes_no_locks() -> None:
    harness = make_harness()

    with pytest.raises(NotFoundException):
        await harness.service.approve(uuid4(), make_actor(role=RoleEnum.ADMIN))
    assert harness.change_requests.lock_log == []


class FakeNestedTransaction:
    async def __aenter__(self) -> FakeNestedTransaction:
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class UniqueViolation(Exception):
    def __init__(self, constraint_name: str) -> None:
        super().__init__(constraint_name)
        self.constraint_name = constraint_name


class FailingInsertSession:
    def __init__(self, constraint_name: str) -> None:
        self.constraint_name = constraint_name

    def begin_nested(self) -> FakeNestedTransaction:
        return FakeNestedTransaction()

    def add(self, instance) -> None:
        pass

    async def flush(self) -> None:
        orig = Exception("insert failed")
        orig.__cause__ = UniqueViolation(self.constraint_name)
        raise IntegrityError("INSERT INTO change_requests", {}, orig)


def insert_fields() -> dict:
    return {
        "reservation_id": uuid4(),
        "original_date": CURRENT_DATE,
        "original_time": CURRENT_TIME,
        "requested_date": NEW_DATE,
        "requested_time": NEW_TIME,
        "schedule_id": uuid4(),
        "reason": None,
    }


@pytest.mark.asyncio
async def test_insert_race_on_pending_index_is_conflict() -> None:
    repository = ChangeRequestsRepository(FailingInsertSession(ONE_PENDING_INDEX))

    with pytest.raises(ConflictException) as exc:
        await repository.create_change_request(**insert_fields())
    assert exc.value.message == PENDING_CONFLICT_MESSAGE


@pytest.mark.asyncio
async def test_deleted_target_schedule_is_not_reported_as_pending_conflict() -> None:
    repository = ChangeRequestsRepository(FailingInsertSession(SCHEDULE_FK))

    with pytest.raises(ValidationException) as exc:
        await repository.create_change_request(**insert_fields())
    assert exc.value.message == "Requested schedule no longer exists"


@pytest.mark.asyncio
async def test_other_integrity_errors_propagate() -> None:
    repository = ChangeRequestsRepository(FailingInsertSession("ck_change_requests_something_else"))

    with pytest.raises(IntegrityError):
        await repository.create_change_request(**insert_fields())



@pytest.mark.asyncio
async def test_decision_with_pending_status_is_rejected() -> None:
    harness = make_harness()
    change_request = await harness.service.create_for_owner(
        harness.reservation.id,
        move_payload(harness),
        harness.owner,
    )

    with pytest.raises(ValidationException):
        await harness.service.apply_admin_decision(
            change_request.id,
            ChangeRequestDecision(status=ChangeRequestStatusEnum.PENDING),
            make_actor(role=RoleEnum.ADMIN),
        )


@pytest.mark.asyncio
async def test_admin_list_includes_customer_and_class() -> None:
    harness = make_harness()
    await harness.service.create_for_owner(harness.reservation.id, move_payload(harness), harness.owner)

    items, total = await harness.service.list_change_requests(50, 0, ChangeRequestStatusEnum.PENDING)

    assert total == 1
    assert items[0].customer_name == "Lee Jiho"
    assert items[0].class_name == "Leather wallet"
    assert items[0].num_people == 1
