"""Category request/response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.db.enums import CategoryVisibility


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: str | None = Field(None, max_length=2000)
    parent_id: UUID | None = None
    visibility: CategoryVisibility = CategoryVisibility.PUBLIC
    society_ids: list[UUID] | None = None
    synonyms: list[str] | None = None
    clinic_id: UUID | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    description: str | None = Field(None, max_length=2000)
    visibility: CategoryVisibility | None = None
    society_ids: list[UUID] | None = None
    synonyms: list[str] | None = None
    is_active: bool | None = None
    order: int | None = Field(None, ge=0)


class CategoryMove(BaseModel):
    parent_id: UUID | None = None


class CategoryRead(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str | None
    parent_id: UUID | None
    path: list[str]
    depth: int
    order: int
    visibility: str
    society_ids: list[str] | None
    synonyms: list[str]
    is_active: bool
    requires_approval: bool
    deleted_at: datetime | None

    model_config = {"from_attributes": True}


class CategoryAccessResponse(BaseModel):
    category_id: UUID
    can_access: bool


class CategoryReject(BaseModel):
    reason: str | None = Field(None, max_length=1000)
