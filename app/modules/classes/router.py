"""Class catalog API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.modules.classes.schemas import ClassCreate, ClassRead, ClassUpdate
from app.modules.classes.service import ClassesService, get_classes_service
from app.modules.identity.service import require_admin
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(tags=["classes"])


@router.get("/classes", response_model=Page[ClassRead])
async def list_active_classes(
    pagination=Depends(get_pagination_params),
    service: ClassesService = Depends(get_classes_service),
) -> Page[ClassRead]:
    """List classes open for booking."""
    items, total = await service.list_classes(
        include_inactive=False,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return build_page([ClassRead.model_validate(item) for item in items], total, pagination)


@router.get("/classes/{class_id}", response_model=ClassRead)
async def get_class(
    class_id: UUID,
    service: ClassesService = Depends(get_classes_service),
) -> ClassRead:
    """Return one active class."""
    return ClassRead.model_validate(await service.get_class(class_id))


@router.get("/admin/classes", response_model=Page[ClassRead])
async def list_all_classes(
    pagination=Depends(get_pagination_params),
    service: ClassesService = Depends(get_classes_service),
    _admin=Depends(require_admin),
) -> Page[ClassRead]:
    """List every class including inactive ones."""
    items, total = await service.list_classes(
        include_inactive=True,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return build_page([ClassRead.model_validate(item) for item in items], total, pagination)


@router.post("/admin/classes", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    service: ClassesService = Depends(get_classes_service),
    _admin=Depends(require_admin),
) -> ClassRead:
    """Create class."""
    return ClassRead.model_validate(await service.create_class(payload))


@router.patch("/admin/classes/{class_id}", response_model=ClassRead)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    service: ClassesService = Depends(get_classes_service),
    _admin=Depends(require_admin),
) -> ClassRead:
    """Update class fields; deactivate with is_active=false."""
    return ClassRead.model_validate(await service.update_class(class_id, payload))
