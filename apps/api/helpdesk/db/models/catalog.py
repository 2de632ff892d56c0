"""Category tree and ticket status directory."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    false,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.db.base import Base
from helpdesk.db.enums import CategoryVisibility
from helpdesk.db.types import JSONType


class Category(Base):
    """
    Node of the global category tree.

    `path` holds ancestor ids (root first, as strings) and `depth` equals its
    length. Empty `society_ids` means the category is visible to everyone.
    A category awaiting approval has `requires_approval` set and stays
    inactive until approved.
    """

    __tablename__ = "categories"
    __table_args__ = (
        Index("idx_categories_parent", "parent_id"),
        Index("idx_categories_active", "is_active", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=True
    )
    path: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    depth: Mapped[int] = mapped_column(Integer, server_default=text("0"), nullable=False)
    order: Mapped[int] = mapped_column(Integer, server_default=text("0"), nullable=False)
    visibility: Mapped[str] = mapped_column(
        String(20), default=CategoryVisibility.PUBLIC.value, nullable=False
    )
    society_ids: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    synonyms: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_pending_approval(self) -> bool:
        return self.requires_approval and not self.is_active and self.deleted_at is None


class TicketStatus(Base):
    """Configurable status directory entry."""

    __tablename__ = "ticket_statuses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    color: Mapped[str] = mapped_column(String(20), default="#6b7280", nullable=False)
    order: Mapped[int] = mapped_column(Integer, server_default=text("0"), nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    is_final: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
