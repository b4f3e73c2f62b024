"""Class catalog schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ClassCreate(BaseModel):
    """Create class request."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    duration_minutes: int = Field(gt=0, le=24 * 60)
    price: int = Field(default=0, ge=0)
    max_participants: int = Field(default=1, ge=1)
    is_active: bool = True
    sort_order: int = 0


class ClassUpdate(BaseModel):
    """Partial class update request."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0, le=24 * 60)
    price: int | None = Field(default=None, ge=0)
    max_participants: int | None = Field(default=None, ge=1)
    is_active: bool | None = None
    sort_order: int | None = None


class ClassRead(BaseModel):
    """Class response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    duration_minutes: int
    price: int
    max_participants: int
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime
