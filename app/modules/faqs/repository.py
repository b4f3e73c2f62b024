"""FAQ repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.faqs.models import Faq


class FaqsRepository:
    """DB operations for FAQ entries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_faq(self, **fields) -> Faq:
        faq = Faq(**fields)
        self.session.add(faq)
        await self.session.flush()
        return faq

    async def get_faq_by_id(self, faq_id: UUID) -> Faq | None:
        return await self.session.scalar(select(Faq).where(Faq.id == faq_id))

    async def max_sort_order(self) -> int | None:
        return await self.session.scalar(select(func.max(Faq.sort_order)))

    async def list_faqs(self, *, only_active: bool) -> list[Faq]:
        stmt = select(Faq)
        if only_active:
            stmt = stmt.where(Faq.is_active.is_(True))
        stmt = stmt.order_by(Faq.sort_order.asc(), Faq.created_at.asc())
        return list((await self.session.scalars(stmt)).all())

    async def update_faq(self, faq: Faq, **fields) -> Faq:
        for name, value in fields.items():
            setattr(faq, name, value)
        await self.session.flush()
        return faq

    async def delete_faq(self, faq: Faq) -> None:
        await self.session.delete(faq)
        await self.session.flush()
