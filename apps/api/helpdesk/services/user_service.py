"""User service - user lookups, capabilities and clinic context."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.db.models import Clinic, Role, User, UserClinic
from helpdesk.services.errors import ValidationError


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (stored lower-case)."""
    return db.query(User).filter(User.email == email.strip().lower()).first()


def get_active_user(db: Session, user_id: UUID | None) -> User | None:
    if user_id is None:
        return None
    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        return None
    return user


def create_user(
    db: Session,
    email: str,
    display_name: str,
    role: Role | None = None,
    clinic_id: UUID | None = None,
) -> User:
    """
    Create a user. Emails are unique and lower-cased.

    A `clinic_id` becomes both the primary clinic and an active membership.
    """
    normalized = (email or "").strip().lower()
    if "@" not in normalized:
        raise ValidationError("Invalid email")
    if get_user_by_email(db, normalized):
        raise ValidationError("A user with this email already exists")
    if clinic_id is not None and not db.get(Clinic, clinic_id):
        raise ValidationError("Clinic not found")
    user = User(
        email=normalized,
        display_name=(display_name or normalized).strip(),
        role_id=role.id if role else None,
        clinic_id=clinic_id,
    )
    db.add(user)
    db.flush()
    if clinic_id is not None:
        db.add(UserClinic(user_id=user.id, clinic_id=clinic_id))
        db.flush()
    return user


def get_or_create_role(db: Session, name: str, permissions: list[str]) -> Role:
    role = db.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
    if role:
        return role
    role = Role(name=name, permissions=list(permissions))
    db.add(role)
    db.flush()
    return role


def get_user_permissions(db: Session, user: User) -> list[str]:
    """Capability strings granted through the user's role."""
    if not user.role_id:
        return []
    role = db.get(Role, user.role_id)
    return list(role.permissions or []) if role else []


def get_user_clinic_ids(db: Session, user_id: UUID) -> list[UUID]:
    """
    Active memberships in active clinics, oldest membership first.

    Users whose primary `clinic_id` predates membership rows keep that clinic
    as long as no membership row (active or not) exists for it.
    """
    memberships = db.execute(
        select(UserClinic.clinic_id, UserClinic.is_active)
        .join(Clinic, Clinic.id == UserClinic.clinic_id)
        .where(UserClinic.user_id == user_id, Clinic.is_active.is_(True))
        .order_by(UserClinic.assigned_at, UserClinic.id)
    ).all()
    clinic_ids = [clinic_id for clinic_id, is_active in memberships if is_active]

    user = db.get(User, user_id)
    if user is not None and user.clinic_id is not None:
        known = {clinic_id for clinic_id, _ in memberships}
        if user.clinic_id not in known:
            clinic = db.get(Clinic, user.clinic_id)
            if clinic is not None and clinic.is_active:
                clinic_ids.append(user.clinic_id)
    return clinic_ids


def resolve_clinic_id(user: User, clinic_ids: list[UUID]) -> UUID | None:
    """Primary clinic when it is an active membership, else the earliest one."""
    if not clinic_ids:
        return None
    if user.clinic_id and user.clinic_id in clinic_ids:
        return user.clinic_id
    return clinic_ids[0]


def is_clinic_member(db: Session, user_id: UUID, clinic_id: UUID) -> bool:
    return clinic_id in get_user_clinic_ids(db, user_id)


def revoke_all_sessions(db: Session, user_id: UUID) -> bool:
    """
    Revoke all sessions for a user by bumping token_version.

    Returns:
        True if user found and sessions revoked, False if user not found
    """
    user = get_user_by_id(db, user_id)
    if not user:
        return False
    user.token_version += 1
    db.flush()
    return True
