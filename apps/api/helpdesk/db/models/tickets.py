"""Ticket, comment and sequence counter models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base
from helpdesk.db.enums import DEFAULT_TICKET_PRIORITY, TicketStatusSlug, TicketVisibility

if TYPE_CHECKING:
    from helpdesk.db.models import Category, Clinic, User


class Ticket(Base):
    """
    Support ticket.

    `ticket_number` is allocated from the global sequence counter and is never
    reused. Tickets are never hard-deleted.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        Index("idx_tickets_clinic_assignee", "clinic_id", "assignee_id"),
        Index("idx_tickets_clinic_category", "clinic_id", "category_id"),
        Index("idx_tickets_creator", "creator_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), default=TicketStatusSlug.OPEN.value, nullable=False
    )
    status_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ticket_statuses.id", ondelete="SET NULL"), nullable=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="RESTRICT"), nullable=False
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    assignee_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    visibility: Mapped[str] = mapped_column(
        String(20), default=TicketVisibility.PRIVATE.value, nullable=False
    )
    priority: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_TICKET_PRIORITY, nullable=False
    )
    last_activity_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    nudge_count: Mapped[int] = mapped_column(Integer, server_default=text("0"), nullable=False)
    last_nudge_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_nudge_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    category: Mapped["Category"] = relationship()
    clinic: Mapped["Clinic"] = relationship()
    creator: Mapped["User"] = relationship(foreign_keys=[creator_id])
    assignee: Mapped["User | None"] = relationship(foreign_keys=[assignee_id])
    comments: Mapped[list["TicketComment"]] = relationship(
        back_populates="ticket", order_by="TicketComment.created_at"
    )


class TicketComment(Base):
    """Comment on a ticket (user, agent, trigger or macro authored)."""

    __tablename__ = "ticket_comments"
    __table_args__ = (Index("idx_ticket_comments_ticket", "ticket_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    ticket: Mapped["Ticket"] = relationship(back_populates="comments")


class SequenceCounter(Base):
    """
    Named monotonic counter.

    `current_value` is the last value handed out. Incremented only through the
    atomic upsert in the sequence service.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    current_value: Mapped[int] = mapped_column(Integer, server_default=text("0"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
