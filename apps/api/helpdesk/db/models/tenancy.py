"""Tenancy models: societies, clinics, roles and users."""

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
    UniqueConstraint,
    Uuid,
    false,
    func,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base
from helpdesk.db.types import JSONType

if TYPE_CHECKING:
    from helpdesk.db.models import Category


class Society(Base):
    """
    Organizational grouping used to scope category visibility.

    Users can belong to several societies; a category scoped to societies is
    only usable by their members.
    """

    __tablename__ = "societies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    memberships: Mapped[list["UserSociety"]] = relationship(back_populates="society")


class Clinic(Base):
    """Tenant. Tickets, triggers and macros all belong to exactly one clinic."""

    __tablename__ = "clinics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    allow_public_tickets: Mapped[bool] = mapped_column(
        Boolean, server_default=true(), nullable=False
    )
    # New categories filed for this clinic start inactive until approved
    require_approval_for_categories: Mapped[bool] = mapped_column(
        Boolean, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Role(Base):
    """Named bundle of capability strings."""

    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    permissions: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class User(Base):
    """Platform user (end user, agent or administrator)."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, server_default=text("1"), nullable=False)
    role_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True
    )
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    role: Mapped["Role | None"] = relationship()
    clinic_memberships: Mapped[list["UserClinic"]] = relationship(back_populates="user")
    society_memberships: Mapped[list["UserSociety"]] = relationship(
        back_populates="user", foreign_keys="UserSociety.user_id"
    )
    competencies: Mapped[list["UserCompetency"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class UserClinic(Base):
    """Clinic membership."""

    __tablename__ = "user_clinics"
    __table_args__ = (
        UniqueConstraint("user_id", "clinic_id", name="uq_user_clinic"),
        Index("idx_user_clinics_clinic", "clinic_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    user: Mapped["User"] = relationship(back_populates="clinic_memberships")
    clinic: Mapped["Clinic"] = relationship()


class UserSociety(Base):
    """
    Society membership.

    Removal deactivates the row; assigning again reactivates it.
    """

    __tablename__ = "user_societies"
    __table_args__ = (
        UniqueConstraint("user_id", "society_id", name="uq_user_society"),
        Index("idx_user_societies_user_active", "user_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    society_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("societies.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    user: Mapped["User"] = relationship(
        back_populates="society_memberships", foreign_keys=[user_id]
    )
    society: Mapped["Society"] = relationship(back_populates="memberships")


class UserCompetency(Base):
    """Category an agent is competent to handle."""

    __tablename__ = "user_competencies"
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_user_competency"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    user: Mapped["User"] = relationship(back_populates="competencies")
    category: Mapped["Category"] = relationship()
