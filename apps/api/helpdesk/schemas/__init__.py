"""Pydantic schemas for API request/response models."""

from helpdesk.schemas.auth import TokenPayload, UserSession
from helpdesk.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from helpdesk.schemas.ticket import TicketCreate, TicketCreateResponse, TicketRead

__all__ = [
    "CategoryCreate",
    "CategoryRead",
    "CategoryUpdate",
    "TicketCreate",
    "TicketCreateResponse",
    "TicketRead",
    "TokenPayload",
    "UserSession",
]
