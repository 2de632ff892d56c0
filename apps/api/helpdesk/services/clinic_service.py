"""Clinic (tenant) directory and memberships."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.db.models import Clinic, User, UserClinic
from helpdesk.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def get_clinic(db: Session, clinic_id: UUID) -> Clinic | None:
    return db.get(Clinic, clinic_id)


def get_clinic_by_code(db: Session, code: str) -> Clinic | None:
    return db.execute(
        select(Clinic).where(Clinic.code == code.strip().upper())
    ).scalar_one_or_none()


def create_clinic(
    db: Session,
    name: str,
    code: str,
    allow_public_tickets: bool = True,
    require_approval_for_categories: bool = False,
) -> Clinic:
    normalized = (code or "").strip().upper()
    if not normalized.isalnum() or not 3 <= len(normalized) <= 10:
        raise ValidationError("Clinic code must be 3-10 alphanumeric characters")
    if get_clinic_by_code(db, normalized):
        raise ValidationError("Clinic code already exists")
    if not name or not name.strip():
        raise ValidationError("Clinic name is required")

    clinic = Clinic(
        name=name.strip(),
        code=normalized,
        allow_public_tickets=allow_public_tickets,
        require_approval_for_categories=require_approval_for_categories,
    )
    db.add(clinic)
    db.flush()
    logger.info(f"Clinic {normalized} created")
    return clinic


def add_user_to_clinic(
    db: Session,
    user_id: UUID,
    clinic_id: UUID,
    make_primary: bool = False,
) -> UserClinic:
    """Add (or reactivate) a clinic membership."""
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if not get_clinic(db, clinic_id):
        raise NotFoundError("Clinic not found")

    membership = db.execute(
        select(UserClinic).where(
            UserClinic.user_id == user_id,
            UserClinic.clinic_id == clinic_id,
        )
    ).scalar_one_or_none()
    if membership:
        membership.is_active = True
    else:
        membership = UserClinic(user_id=user_id, clinic_id=clinic_id)
        db.add(membership)
    if make_primary or user.clinic_id is None:
        user.clinic_id = clinic_id
    db.flush()
    return membership


def remove_user_from_clinic(db: Session, user_id: UUID, clinic_id: UUID) -> UserClinic:
    membership = db.execute(
        select(UserClinic).where(
            UserClinic.user_id == user_id,
            UserClinic.clinic_id == clinic_id,
        )
    ).scalar_one_or_none()
    if not membership:
        raise NotFoundError("Clinic membership not found")
    membership.is_active = False
    db.flush()
    return membership
