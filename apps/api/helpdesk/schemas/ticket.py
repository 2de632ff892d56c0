"""Ticket request/response schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.db.enums import TicketVisibility


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=20000)
    category_id: UUID
    visibility: TicketVisibility | None = None
    priority: int | None = None
    clinic_id: UUID | None = None


class TicketCreateResponse(BaseModel):
    ticket_id: UUID
    ticket_number: int
    triggers: dict[str, Any]


class TicketRead(BaseModel):
    id: UUID
    ticket_number: int
    title: str
    description: str
    status: str
    status_id: UUID | None
    category_id: UUID
    clinic_id: UUID
    creator_id: UUID
    assignee_id: UUID | None
    visibility: str
    priority: int
    nudge_count: int
    last_nudge_at: datetime | None
    last_activity_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketAssign(BaseModel):
    assignee_id: UUID | None = None


class TicketStatusChange(BaseModel):
    status: str = Field(..., min_length=1, max_length=100)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)
    is_internal: bool = False


class CommentRead(BaseModel):
    id: UUID
    ticket_id: UUID
    author_id: UUID
    content: str
    is_internal: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class MacroExecutionResponse(BaseModel):
    success: bool
    macro_name: str
    applied: list[dict[str, Any]]
    skipped: list[dict[str, Any]]
