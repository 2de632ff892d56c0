"""Trigger administration (CRUD, toggling and read-path scoping)."""

import logging
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpdesk.db.enums import (
    AuditAction,
    AuditEntityType,
    TriggerActionType,
    TriggerConditionType,
)
from helpdesk.db.models import Clinic, Trigger
from helpdesk.services import audit_service, category_access
from helpdesk.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


def _validate_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(f"Trigger name must be at least {MIN_NAME_LENGTH} characters long")
    return cleaned


def _validate_rule(payload: Any, allowed: type, label: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(f"Trigger {label} must be an object with type and value")
    rule_type = payload.get("type")
    try:
        allowed(rule_type)
    except ValueError:
        raise ValidationError(f"Unknown {label} type: {rule_type}")
    if payload.get("value") in (None, ""):
        raise ValidationError(f"Trigger {label} value is required")
    return {"type": rule_type, "value": payload["value"]}


def _normalize_society_ids(society_ids: Iterable[UUID | str] | None) -> list[str] | None:
    if not society_ids:
        return None
    return sorted({str(s) for s in society_ids})


def _next_position(db: Session, clinic_id: UUID) -> int:
    current = db.execute(
        select(func.max(Trigger.position)).where(Trigger.clinic_id == clinic_id)
    ).scalar_one_or_none()
    return 0 if current is None else current + 1


def get_trigger(
    db: Session,
    trigger_id: UUID,
    clinic_ids: Iterable[UUID] | None = None,
) -> Trigger | None:
    """Trigger by id, optionally restricted to a set of clinics."""
    trigger = db.get(Trigger, trigger_id)
    if trigger is None:
        return None
    if clinic_ids is not None and trigger.clinic_id not in set(clinic_ids):
        return None
    return trigger


def _require_trigger(db: Session, trigger_id: UUID, clinic_ids: Iterable[UUID] | None) -> Trigger:
    trigger = get_trigger(db, trigger_id, clinic_ids)
    if not trigger:
        raise NotFoundError("Trigger not found")
    return trigger


def list_triggers(
    db: Session,
    clinic_id: UUID,
    is_active: bool | None = None,
) -> list[Trigger]:
    """Triggers of a clinic in execution order."""
    query = select(Trigger).where(Trigger.clinic_id == clinic_id)
    if is_active is not None:
        query = query.where(Trigger.is_active.is_(is_active))
    query = query.order_by(Trigger.position, Trigger.created_at, Trigger.id)
    return list(db.execute(query).scalars().all())


def list_triggers_for_actor(
    db: Session,
    clinic_ids: Iterable[UUID],
    society_ids: Iterable[str],
    is_active: bool | None = None,
) -> list[Trigger]:
    """Triggers of the actor's clinics that are visible to the actor's societies."""
    clinic_ids = list(clinic_ids)
    if not clinic_ids:
        return []
    society_ids = list(society_ids)
    query = select(Trigger).where(Trigger.clinic_id.in_(clinic_ids))
    if is_active is not None:
        query = query.where(Trigger.is_active.is_(is_active))
    query = query.order_by(Trigger.clinic_id, Trigger.position, Trigger.created_at, Trigger.id)
    return [
        trigger
        for trigger in db.execute(query).scalars().all()
        if category_access.is_visible_to_societies(trigger.society_ids, society_ids)
    ]


def create_trigger(
    db: Session,
    clinic_id: UUID,
    name: str,
    conditions: dict[str, Any],
    actions: dict[str, Any],
    actor_id: UUID | None = None,
    is_active: bool = True,
    society_ids: Iterable[UUID | str] | None = None,
) -> Trigger:
    """Create a trigger at the end of the clinic's execution order."""
    cleaned = _validate_name(name)
    if not db.get(Clinic, clinic_id):
        raise NotFoundError("Clinic not found")

    trigger = Trigger(
        clinic_id=clinic_id,
        name=cleaned,
        conditions=_validate_rule(conditions, TriggerConditionType, "condition"),
        actions=_validate_rule(actions, TriggerActionType, "action"),
        is_active=is_active,
        society_ids=_normalize_society_ids(society_ids),
        position=_next_position(db, clinic_id),
        created_by=actor_id,
    )
    db.add(trigger)
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.TRIGGER,
        trigger.id,
        AuditAction.CREATED,
        user_id=actor_id,
        changes={"name": cleaned, "position": trigger.position},
    )
    logger.info(f"Trigger {trigger.id} created for clinic {clinic_id}")
    return trigger


def update_trigger(
    db: Session,
    trigger_id: UUID,
    actor_id: UUID | None = None,
    clinic_ids: Iterable[UUID] | None = None,
    name: str | None = None,
    conditions: dict[str, Any] | None = None,
    actions: dict[str, Any] | None = None,
    is_active: bool | None = None,
    society_ids: Iterable[UUID | str] | None = None,
    position: int | None = None,
) -> Trigger:
    trigger = _require_trigger(db, trigger_id, clinic_ids)
    changes: dict[str, Any] = {}

    if name is not None:
        trigger.name = _validate_name(name)
        changes["name"] = trigger.name
    if conditions is not None:
        trigger.conditions = _validate_rule(conditions, TriggerConditionType, "condition")
        changes["conditions"] = trigger.conditions
    if actions is not None:
        trigger.actions = _validate_rule(actions, TriggerActionType, "action")
        changes["actions"] = trigger.actions
    if is_active is not None:
        trigger.is_active = is_active
        changes["is_active"] = is_active
    if society_ids is not None:
        trigger.society_ids = _normalize_society_ids(society_ids)
        changes["society_ids"] = trigger.society_ids
    if position is not None:
        if position < 0:
            raise ValidationError("Position must be zero or greater")
        trigger.position = position
        changes["position"] = position

    db.flush()
    if changes:
        audit_service.log_event(
            db, AuditEntityType.TRIGGER, trigger.id, AuditAction.UPDATED, actor_id, changes
        )
    return trigger


def toggle_trigger(
    db: Session,
    trigger_id: UUID,
    is_active: bool,
    actor_id: UUID | None = None,
    clinic_ids: Iterable[UUID] | None = None,
) -> Trigger:
    return update_trigger(
        db, trigger_id, actor_id=actor_id, clinic_ids=clinic_ids, is_active=is_active
    )


def delete_trigger(
    db: Session,
    trigger_id: UUID,
    actor_id: UUID | None = None,
    clinic_ids: Iterable[UUID] | None = None,
) -> None:
    trigger = _require_trigger(db, trigger_id, clinic_ids)
    entity_id = trigger.id
    db.delete(trigger)
    db.flush()
    audit_service.log_event(
        db, AuditEntityType.TRIGGER, entity_id, AuditAction.DELETED, user_id=actor_id
    )


def get_trigger_stats(db: Session, clinic_id: UUID) -> dict[str, int]:
    """Active/inactive counts for a clinic."""
    rows = db.execute(
        select(Trigger.is_active, func.count(Trigger.id))
        .where(Trigger.clinic_id == clinic_id)
        .group_by(Trigger.is_active)
    ).all()
    counts = {bool(is_active): count for is_active, count in rows}
    active = counts.get(True, 0)
    inactive = counts.get(False, 0)
    return {"total": active + inactive, "active": active, "inactive": inactive}
