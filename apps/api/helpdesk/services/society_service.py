"""Society directory and user memberships."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.db.enums import AuditAction, AuditEntityType
from helpdesk.db.models import Society, User, UserSociety
from helpdesk.services import audit_service
from helpdesk.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# Societies
# =============================================================================


def _normalize_code(code: str | None) -> str:
    normalized = (code or "").strip().upper()
    if not normalized:
        raise ValidationError("Society code is required")
    return normalized


def get_society(db: Session, society_id: UUID) -> Society | None:
    return db.get(Society, society_id)


def get_society_by_code(db: Session, code: str) -> Society | None:
    return db.execute(
        select(Society).where(Society.code == code.strip().upper())
    ).scalar_one_or_none()


def list_societies(db: Session, active_only: bool = True) -> list[Society]:
    query = select(Society)
    if active_only:
        query = query.where(Society.is_active.is_(True))
    return list(db.execute(query.order_by(Society.name)).scalars().all())


def create_society(
    db: Session,
    code: str,
    name: str,
    actor_id: UUID | None = None,
) -> Society:
    """Create a society. Codes are unique and upper-cased."""
    normalized = _normalize_code(code)
    if get_society_by_code(db, normalized):
        raise ValidationError("Society code already exists")
    if not name or not name.strip():
        raise ValidationError("Society name is required")

    society = Society(code=normalized, name=name.strip())
    db.add(society)
    db.flush()
    audit_service.log_event(
        db,
        AuditEntityType.SOCIETY,
        society.id,
        AuditAction.CREATED,
        user_id=actor_id,
        changes={"code": normalized},
    )
    return society


def update_society(
    db: Session,
    society_id: UUID,
    code: str | None = None,
    name: str | None = None,
    is_active: bool | None = None,
    actor_id: UUID | None = None,
) -> Society:
    society = get_society(db, society_id)
    if not society:
        raise NotFoundError("Society not found")

    changes: dict = {}
    if code is not None:
        normalized = _normalize_code(code)
        existing = get_society_by_code(db, normalized)
        if existing and existing.id != society.id:
            raise ValidationError("Society code already exists")
        society.code = normalized
        changes["code"] = normalized
    if name is not None:
        society.name = name.strip()
        changes["name"] = society.name
    if is_active is not None:
        society.is_active = is_active
        changes["is_active"] = is_active

    db.flush()
    audit_service.log_event(
        db, AuditEntityType.SOCIETY, society.id, AuditAction.UPDATED, actor_id, changes
    )
    return society


# =============================================================================
# Memberships
# =============================================================================


def _get_membership(db: Session, user_id: UUID, society_id: UUID) -> UserSociety | None:
    return db.execute(
        select(UserSociety).where(
            UserSociety.user_id == user_id,
            UserSociety.society_id == society_id,
        )
    ).scalar_one_or_none()


def assign_user_to_society(
    db: Session,
    user_id: UUID,
    society_id: UUID,
    actor_id: UUID | None = None,
) -> UserSociety:
    """Add a membership, reactivating a previously removed one."""
    society = get_society(db, society_id)
    if not society or not society.is_active:
        raise NotFoundError("Society not found or inactive")
    if not db.get(User, user_id):
        raise NotFoundError("User not found")

    membership = _get_membership(db, user_id, society_id)
    if membership:
        if membership.is_active:
            return membership
        membership.is_active = True
        membership.assigned_by = actor_id
    else:
        membership = UserSociety(user_id=user_id, society_id=society_id, assigned_by=actor_id)
        db.add(membership)
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.USER_SOCIETY,
        membership.id,
        AuditAction.ASSIGNED,
        user_id=actor_id,
        changes={"user_id": user_id, "society_id": society_id},
    )
    logger.info(f"User {user_id} assigned to society {society.code}")
    return membership


def remove_user_from_society(
    db: Session,
    user_id: UUID,
    society_id: UUID,
    actor_id: UUID | None = None,
) -> UserSociety:
    """Deactivate a membership."""
    membership = _get_membership(db, user_id, society_id)
    if not membership:
        raise NotFoundError("Assignment not found")
    membership.is_active = False
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.USER_SOCIETY,
        membership.id,
        AuditAction.UNASSIGNED,
        user_id=actor_id,
        changes={"user_id": user_id, "society_id": society_id},
    )
    return membership


def list_user_societies(db: Session, user_id: UUID, active_only: bool = True) -> list[Society]:
    query = (
        select(Society)
        .join(UserSociety, UserSociety.society_id == Society.id)
        .where(UserSociety.user_id == user_id)
    )
    if active_only:
        query = query.where(UserSociety.is_active.is_(True))
    return list(db.execute(query.order_by(Society.name)).scalars().all())


def has_user_society_access(db: Session, user_id: UUID, society_id: UUID) -> bool:
    membership = _get_membership(db, user_id, society_id)
    return bool(membership and membership.is_active)
