"""Macro administration and approval.

Macros created with `requires_approval` start inactive. Approving one also
activates it; rejecting one keeps it inactive with the reason recorded.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from helpdesk.db.enums import AuditAction, AuditEntityType, MacroActionType
from helpdesk.db.models import Clinic, Macro, User
from helpdesk.services import audit_service, user_service
from helpdesk.services.errors import NotFoundError, UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
DEFAULT_REJECTION_REASON = "Rejected by an administrator"


def _validate_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(f"Macro name must be at least {MIN_NAME_LENGTH} characters long")
    return cleaned


def _validate_actions(actions: Any) -> list[dict[str, Any]]:
    """Non-empty list of known `{type, value, order?}` actions, order preserved."""
    if not isinstance(actions, list) or not actions:
        raise ValidationError("Macro must have at least one action")
    normalized: list[dict[str, Any]] = []
    for action in actions:
        if not isinstance(action, dict):
            raise ValidationError("Macro actions must be objects with type and value")
        try:
            action_type = MacroActionType(action.get("type")).value
        except ValueError:
            raise ValidationError(f"Unknown macro action type: {action.get('type')}")
        item: dict[str, Any] = {"type": action_type, "value": action.get("value")}
        if action.get("order") is not None:
            item["order"] = action["order"]
        normalized.append(item)
    return normalized


def get_macro(
    db: Session,
    macro_id: UUID,
    clinic_ids: Iterable[UUID] | None = None,
) -> Macro | None:
    macro = db.get(Macro, macro_id)
    if macro is None:
        return None
    if clinic_ids is not None and macro.clinic_id not in set(clinic_ids):
        return None
    return macro


def _require_macro(db: Session, macro_id: UUID, clinic_ids: Iterable[UUID] | None) -> Macro:
    macro = get_macro(db, macro_id, clinic_ids)
    if not macro:
        raise NotFoundError("Macro not found")
    return macro


def list_macros(db: Session, clinic_id: UUID, is_active: bool | None = None) -> list[Macro]:
    query = select(Macro).where(Macro.clinic_id == clinic_id)
    if is_active is not None:
        query = query.where(Macro.is_active.is_(is_active))
    return list(db.execute(query.order_by(Macro.name)).scalars().all())


def list_macros_for_clinics(db: Session, clinic_ids: Iterable[UUID]) -> list[Macro]:
    clinic_ids = list(clinic_ids)
    if not clinic_ids:
        return []
    return list(
        db.execute(
            select(Macro).where(Macro.clinic_id.in_(clinic_ids)).order_by(Macro.name)
        )
        .scalars()
        .all()
    )


def list_active_macros_for_category(db: Session, clinic_id: UUID, category: str) -> list[Macro]:
    """Active, runnable macros of a clinic filed under a category slug."""
    return list(
        db.execute(
            select(Macro)
            .where(
                Macro.clinic_id == clinic_id,
                Macro.category == category,
                Macro.is_active.is_(True),
                or_(Macro.requires_approval.is_(False), Macro.is_approved.is_(True)),
            )
            .order_by(Macro.name)
        )
        .scalars()
        .all()
    )


def create_macro(
    db: Session,
    clinic_id: UUID,
    name: str,
    category: str,
    actions: list[dict[str, Any]],
    actor_id: UUID | None = None,
    description: str | None = None,
    is_active: bool = True,
    requires_approval: bool = False,
) -> Macro:
    """Create a macro. One that requires approval starts inactive."""
    cleaned = _validate_name(name)
    if not db.get(Clinic, clinic_id):
        raise NotFoundError("Clinic not found")
    if not category or not category.strip():
        raise ValidationError("Macro category is required")

    macro = Macro(
        clinic_id=clinic_id,
        name=cleaned,
        description=description.strip() if description else None,
        category=category.strip(),
        actions=_validate_actions(actions),
        is_active=is_active and not requires_approval,
        requires_approval=requires_approval,
        is_approved=False,
        created_by=actor_id,
    )
    db.add(macro)
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.MACRO,
        macro.id,
        AuditAction.CREATED,
        user_id=actor_id,
        changes={
            "name": cleaned,
            "actions": len(macro.actions),
            "requires_approval": requires_approval,
        },
    )
    return macro


def update_macro(
    db: Session,
    macro_id: UUID,
    actor_id: UUID | None = None,
    clinic_ids: Iterable[UUID] | None = None,
    name: str | None = None,
    description: str | None = None,
    category: str | None = None,
    actions: list[dict[str, Any]] | None = None,
    is_active: bool | None = None,
) -> Macro:
    macro = _require_macro(db, macro_id, clinic_ids)
    changes: dict[str, Any] = {}

    if name is not None:
        macro.name = _validate_name(name)
        changes["name"] = macro.name
    if description is not None:
        macro.description = description.strip() or None
        changes["description"] = True
    if category is not None:
        if not category.strip():
            raise ValidationError("Macro category is required")
        macro.category = category.strip()
        changes["category"] = macro.category
    if actions is not None:
        macro.actions = _validate_actions(actions)
        changes["actions"] = len(macro.actions)
    if is_active is not None:
        if is_active and macro.requires_approval and not macro.is_approved:
            raise ValidationError("Macro must be approved before it can be activated")
        macro.is_active = is_active
        changes["is_active"] = is_active

    db.flush()
    if changes:
        audit_service.log_event(
            db, AuditEntityType.MACRO, macro.id, AuditAction.UPDATED, actor_id, changes
        )
    return macro


def delete_macro(
    db: Session,
    macro_id: UUID,
    actor_id: UUID | None = None,
    clinic_ids: Iterable[UUID] | None = None,
) -> None:
    macro = _require_macro(db, macro_id, clinic_ids)
    entity_id = macro.id
    db.delete(macro)
    db.flush()
    audit_service.log_event(
        db, AuditEntityType.MACRO, entity_id, AuditAction.DELETED, user_id=actor_id
    )


# =============================================================================
# Approval
# =============================================================================


def list_pending_macros(db: Session, clinic_ids: Iterable[UUID]) -> list[Macro]:
    """Macros awaiting a decision, oldest first."""
    clinic_ids = list(clinic_ids)
    if not clinic_ids:
        return []
    return list(
        db.execute(
            select(Macro)
            .where(
                Macro.clinic_id.in_(clinic_ids),
                Macro.requires_approval.is_(True),
                Macro.is_approved.is_(False),
                Macro.rejected_at.is_(None),
            )
            .order_by(Macro.created_at, Macro.id)
        )
        .scalars()
        .all()
    )


def _require_approver(db: Session, approver_id: UUID | None) -> User:
    approver = user_service.get_active_user(db, approver_id)
    if not approver:
        raise UnauthorizedError("Approver not found")
    return approver


def approve_macro(
    db: Session,
    macro_id: UUID,
    approver_id: UUID,
    clinic_ids: Iterable[UUID] | None = None,
) -> Macro:
    """
    Approve a macro and activate it. A previously rejected macro can still be
    approved.

    Raises:
        UnauthorizedError: approver unknown or inactive
        NotFoundError: macro missing or outside `clinic_ids`
        ValidationError: macro does not require approval or is already approved
    """
    approver = _require_approver(db, approver_id)
    macro = _require_macro(db, macro_id, clinic_ids)
    if not macro.requires_approval:
        raise ValidationError("Macro does not require approval")
    if macro.is_approved:
        raise ValidationError("Macro is already approved")

    macro.is_approved = True
    macro.approved_by = approver.id
    macro.approved_at = datetime.now(timezone.utc)
    macro.rejected_by = None
    macro.rejected_at = None
    macro.rejection_reason = None
    macro.is_active = True
    db.flush()

    audit_service.log_event(
        db, AuditEntityType.MACRO, macro.id, AuditAction.APPROVED, user_id=approver.id
    )
    logger.info(f"Macro {macro.id} approved")
    return macro


def reject_macro(
    db: Session,
    macro_id: UUID,
    approver_id: UUID,
    reason: str | None = None,
    clinic_ids: Iterable[UUID] | None = None,
) -> Macro:
    """Reject a macro. It is deactivated and keeps the rejection reason."""
    approver = _require_approver(db, approver_id)
    macro = _require_macro(db, macro_id, clinic_ids)
    if not macro.requires_approval:
        raise ValidationError("Macro does not require approval")

    macro.is_approved = False
    macro.approved_by = None
    macro.approved_at = None
    macro.rejected_by = approver.id
    macro.rejected_at = datetime.now(timezone.utc)
    macro.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    macro.is_active = False
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.MACRO,
        macro.id,
        AuditAction.REJECTED,
        user_id=approver.id,
        changes={"reason": macro.rejection_reason},
    )
    logger.info(f"Macro {macro.id} rejected")
    return macro
