"""FAQ API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.modules.faqs.schemas import FaqCreate, FaqDeleteResult, FaqRead, FaqUpdate
from app.modules.faqs.service import FaqsService, get_faqs_service
from app.modules.identity.service import require_admin

router = APIRouter(tags=["faqs"])


@router.get("/faqs", response_model=list[FaqRead])
async def list_public_faqs(service: FaqsService = Depends(get_faqs_service)) -> list[FaqRead]:
    """Active FAQ entries in display order."""
    return [FaqRead.model_validate(item) for item in await service.list_faqs(include_inactive=False)]


@router.get("/admin/faqs", response_model=list[FaqRead])
async def list_all_faqs(
    service: FaqsService = Depends(get_faqs_service),
    _admin=Depends(require_admin),
) -> list[FaqRead]:
    return [FaqRead.model_validate(item) for item in await service.list_faqs(include_inactive=True)]


@router.post("/admin/faqs", response_model=FaqRead, status_code=status.HTTP_201_CREATED)
async def create_faq(
    payload: FaqCreate,
    service: FaqsService = Depends(get_faqs_service),
    _admin=Depends(require_admin),
) -> FaqRead:
    return FaqRead.model_validate(await service.create_faq(payload))


@router.patch("/admin/faqs/{faq_id}", response_model=FaqRead)
async def update_faq(
    faq_id: UUID,
    payload: FaqUpdate,
    service: FaqsService = Depends(get_faqs_service),
    _admin=Depends(require_admin),
) -> FaqRead:
    return FaqRead.model_validate(await service.update_faq(faq_id, payload))


@router.delete("/admin/faqs/{faq_id}", response_model=FaqDeleteResult)
async def delete_faq(
    faq_id: UUID,
    service: FaqsService = Depends(get_faqs_service),
    _admin=Depends(require_admin),
) -> FaqDeleteResult:
    await service.delete_faq(faq_id)
    return FaqDeleteResult(faq_id=faq_id, deleted=True)
