"""Class catalog business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.classes.models import StudioClass
from app.modules.classes.repository import ClassesRepository
from app.modules.classes.schemas import ClassCreate, ClassUpdate
from app.shared.exceptions import NotFoundException, ValidationException


class ClassesService:
    """Class catalog service. Authorization is enforced by router dependencies."""

    def __init__(self, repository: ClassesRepository) -> None:
        self.repository = repository

    async def create_class(self, payload: ClassCreate) -> StudioClass:
        return await self.repository.create_class(**payload.model_dump())

    async def get_class(self, class_id: UUID, *, include_inactive: bool = False) -> StudioClass:
        studio_class = await self.repository.get_class_by_id(class_id)
        if studio_class is None or (not include_inactive and not studio_class.is_active):
            raise NotFoundException("Class not found")
        return studio_class

    async def update_class(self, class_id: UUID, payload: ClassUpdate) -> StudioClass:
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationException("Nothing to update")
        studio_class = await self.get_class(class_id, include_inactive=True)
        return await self.repository.update_class(studio_class, **changes)

    async def list_classes(
        self,
        *,
        include_inactive: bool,
        limit: int,
        offset: int,
    ) -> tuple[list[StudioClass], int]:
        return await self.repository.list_classes(
            include_inactive=include_inactive,
            limit=limit,
            offset=offset,
        )


async def get_classes_service(session: AsyncSession = Depends(get_db_session)) -> ClassesService:
    """Dependency provider for classes service."""
    return ClassesService(ClassesRepository(session))
