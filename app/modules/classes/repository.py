"""Class catalog repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.classes.models import StudioClass


class ClassesRepository:
    """DB operations for the class catalog."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_class(self, **fields) -> StudioClass:
        studio_class = StudioClass(**fields)
        self.session.add(studio_class)
        await self.session.flush()
        return studio_class

    async def get_class_by_id(self, class_id: UUID) -> StudioClass | None:
        stmt = select(StudioClass).where(StudioClass.id == class_id)
        return await self.session.scalar(stmt)

    async def list_classes(
        self,
        *,
        include_inactive: bool,
        limit: int,
        offset: int,
    ) -> tuple[list[StudioClass], int]:
        base_stmt: Select[tuple[StudioClass]] = select(StudioClass)
        if not include_inactive:
            base_stmt = base_stmt.where(StudioClass.is_active.is_(True))

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = (
            base_stmt.order_by(StudioClass.sort_order.asc(), StudioClass.created_at.asc())
            .limit(limit)
            .offset(offset)
        )
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def update_class(self, studio_class: StudioClass, **fields) -> StudioClass:
        for name, value in fields.items():
            setattr(studio_class, name, value)
        await self.session.flush()
        return studio_class
