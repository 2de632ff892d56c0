"""Trigger and macro schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class RulePart(BaseModel):
    """A `{type, value}` condition or action."""
    type: str
    value: Any = None


class MacroAction(RulePart):
    order: int | None = None


class TriggerCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    clinic_id: UUID | None = None
    conditions: RulePart
    actions: RulePart
    is_active: bool = True
    society_ids: list[UUID] | None = None


class TriggerUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    conditions: RulePart | None = None
    actions: RulePart | None = None
    is_active: bool | None = None
    society_ids: list[UUID] | None = None
    position: int | None = Field(None, ge=0)


class TriggerRead(BaseModel):
    id: UUID
    clinic_id: UUID
    name: str
    conditions: dict[str, Any]
    actions: dict[str, Any]
    is_active: bool
    society_ids: list[str] | None
    position: int
    created_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MacroCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    clinic_id: UUID | None = None
    description: str | None = Field(None, max_length=2000)
    category: str = Field(..., min_length=1, max_length=200)
    actions: list[MacroAction] = Field(..., min_length=1)
    is_active: bool = True
    requires_approval: bool = False


class MacroUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    description: str | None = Field(None, max_length=2000)
    category: str | None = Field(None, min_length=1, max_length=200)
    actions: list[MacroAction] | None = None
    is_active: bool | None = None


class MacroRead(BaseModel):
    id: UUID
    clinic_id: UUID
    name: str
    description: str | None
    category: str
    actions: list[dict[str, Any]]
    is_active: bool
    requires_approval: bool
    is_approved: bool
    approved_by: UUID | None
    approved_at: datetime | None
    rejected_at: datetime | None
    rejection_reason: str | None
    created_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MacroReject(BaseModel):
    reason: str | None = Field(None, max_length=1000)
