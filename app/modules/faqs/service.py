"""FAQ business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.faqs.models import Faq
from app.modules.faqs.repository import FaqsRepository
from app.modules.faqs.schemas import FaqCreate, FaqUpdate
from app.shared.exceptions import NotFoundException, ValidationException
from app.shared.utils import strip_or_none


class FaqsService:
    """FAQ catalog. Authorization is enforced by router dependencies."""

    def __init__(self, repository: FaqsRepository) -> None:
        self.repository = repository

    async def create_faq(self, payload: FaqCreate) -> Faq:
        question = strip_or_none(payload.question)
        answer = strip_or_none(payload.answer)
        if question is None or answer is None:
            raise ValidationException("Question and answer are required")

        sort_order = payload.sort_order
        if sort_order is None:
            current_max = await self.repository.max_sort_order()
            sort_order = 1 if current_max is None else current_max + 1

        return await self.repository.create_faq(
            question=question,
            answer=answer,
            sort_order=sort_order,
            is_active=payload.is_active,
        )

    async def list_faqs(self, *, include_inactive: bool) -> list[Faq]:
        return await self.repository.list_faqs(only_active=not include_inactive)

    async def _get(self, faq_id: UUID) -> Faq:
        faq = await self.repository.get_faq_by_id(faq_id)
        if faq is None:
            raise NotFoundException("FAQ not found")
        return faq

    async def update_faq(self, faq_id: UUID, payload: FaqUpdate) -> Faq:
        changes = payload.model_dump(exclude_unset=True)
        for text_field in ("question", "answer"):
            if text_field in changes:
                value = strip_or_none(changes[text_field])
                if value is None:
                    raise ValidationException(f"{text_field} cannot be empty")
                changes[text_field] = value
        for flag in ("sort_order", "is_active"):
            if flag in changes and changes[flag] is None:
                raise ValidationException(f"{flag} cannot be null")
        if not changes:
            raise ValidationException("Nothing to update")

        faq = await self._get(faq_id)
        return await self.repository.update_faq(faq, **changes)

    async def delete_faq(self, faq_id: UUID) -> None:
        faq = await self._get(faq_id)
        await self.repository.delete_faq(faq)


async def get_faqs_service(session: AsyncSession = Depends(get_db_session)) -> FaqsService:
    """Dependency provider for FAQ service."""
    return FaqsService(FaqsRepository(session))
