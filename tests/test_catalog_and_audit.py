from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest

import app.modules.audit.service as audit_service_module
from app.core.enums import OutboxStatusEnum
from app.modules.audit.service import AuditService
from app.modules.classes.schemas import ClassCreate, ClassUpdate
from app.modules.classes.service import ClassesService
from app.shared.exceptions import NotFoundException, ValidationException


class FakeClassesRepository:
    def __init__(self) -> None:
        self.classes: dict = {}

    async def create_class(self, **fields):
        studio_class = SimpleNamespace(id=uuid4(), **fields)
        self.classes[studio_class.id] = studio_class
        return studio_class

    async def get_class_by_id(self, class_id):
        return self.classes.get(class_id)

    async def update_class(self, studio_class, **fields):
        for key, value in fields.items():
            setattr(studio_class, key, value)
        return studio_class


@pytest.mark.asyncio
async def test_inactive_class_hidden_unless_requested() -> None:
    service = ClassesService(FakeClassesRepository())  # type: ignore[arg-type]
    created = await service.create_class(
        ClassCreate(name="Wheel throwing", duration_minutes=120, price=60000, max_participants=4, is_active=False),
    )

    with pytest.raises(NotFoundException):
        await service.get_class(created.id)
    assert (await service.get_class(created.id, include_inactive=True)).name == "Wheel throwing"


@pytest.mark.asyncio
async def test_class_update_applies_only_sent_fields() -> None:
    service = ClassesService(FakeClassesRepository())  # type: ignore[arg-type]
    created = await service.create_class(ClassCreate(name="Glazing", duration_minutes=60, max_participants=6))

    updated = await service.update_class(created.id, ClassUpdate(max_participants=8))

    assert updated.max_participants == 8
    assert updated.name == "Glazing"
    with pytest.raises(ValidationException):
        await service.update_class(created.id, ClassUpdate())


class FakeAuditRepository:
    def __init__(self, event) -> None:
        self.event = event
        self.marked: list = []

    async def get_outbox_event(self, event_id):
        return self.event if self.event is not None and self.event.id == event_id else None

    async def mark_outbox_processed(self, event, processed_at):
        self.marked.append(event.id)
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        return event


@pytest.mark.asyncio
async def test_acknowledge_marks_event_once(monkeypatch: pytest.MonkeyPatch) -> None:
    now = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)
    monkeypatch.setattr(audit_service_module, "utc_now", lambda: now)
    event = SimpleNamespace(id=uuid4(), status=OutboxStatusEnum.PENDING, processed_at=None)
    repository = FakeAuditRepository(event)
    service = AuditService(repository)  # type: ignore[arg-type]

    first = await service.acknowledge(event.id)
    second = await service.acknowledge(event.id)

    assert first.status == OutboxStatusEnum.PROCESSED
    assert second.processed_at == now
    assert repository.marked == [event.id]


@pytest.mark.asyncio
async def test_acknowledge_unknown_event() -> None:
    service = AuditService(FakeAuditRepository(None))  # type: ignore[arg-type]

    with pytest.raises(NotFoundException):
        await service.acknowledge(uuid4())
