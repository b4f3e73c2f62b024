"""FAQ schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FaqCreate(BaseModel):
    """Create FAQ request; sort_order defaults to the end of the list."""

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    sort_order: int | None = None
    is_active: bool = True


class FaqUpdate(BaseModel):
    question: str | None = None
    answer: str | None = None
    sort_order: int | None = None
    is_active: bool | None = None


class FaqRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question: str
    answer: str
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class FaqDeleteResult(BaseModel):
    faq_id: UUID
    deleted: bool
